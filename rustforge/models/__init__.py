"""rustforge data models — all Pydantic v2, all frozen (immutable)."""

from rustforge.models.bom import BOMEntry
from rustforge.models.catalog import ArtifactDescriptor, Catalog, ConfigurationOption
from rustforge.models.layers import (
    CargoInputs,
    FingerprintInputs,
    LayerKind,
    LayerMetadata,
    LayerState,
    RustInputs,
    RustupInitInputs,
    RustupInputs,
)
from rustforge.models.results import (
    PLAN_ENTRY_RUST,
    PLAN_ENTRY_RUSTUP,
    BuildPlan,
    BuildResult,
    DetectResult,
    StageOutcome,
)

__all__ = [
    # catalog
    "ArtifactDescriptor",
    "Catalog",
    "ConfigurationOption",
    # layers
    "LayerKind",
    "LayerState",
    "LayerMetadata",
    "FingerprintInputs",
    "RustupInitInputs",
    "CargoInputs",
    "RustupInputs",
    "RustInputs",
    # bom
    "BOMEntry",
    # results
    "StageOutcome",
    "BuildResult",
    "BuildPlan",
    "DetectResult",
    "PLAN_ENTRY_RUSTUP",
    "PLAN_ENTRY_RUST",
]
