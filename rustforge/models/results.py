"""Build and detect result models."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from rustforge.models.bom import BOMEntry
from rustforge.models.layers import LayerState

PLAN_ENTRY_RUSTUP = "rustup"
PLAN_ENTRY_RUST = "rust"


class StageOutcome(BaseModel):
    """What one pipeline stage did in this build."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: LayerState
    path: Path
    bom: BOMEntry | None = None


class BuildResult(BaseModel):
    """Outcome of a whole build invocation."""

    model_config = ConfigDict(frozen=True)

    build_id: str
    layers: list[StageOutcome] = Field(default_factory=list)
    unmet: list[str] = Field(default_factory=list)

    @property
    def bom(self) -> list[BOMEntry]:
        return [outcome.bom for outcome in self.layers if outcome.bom is not None]


class BuildPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    provides: list[str]


class DetectResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    plans: list[BuildPlan] = Field(default_factory=list)
