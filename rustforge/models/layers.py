"""Layer models — kinds, reuse states, typed fingerprint inputs, metadata."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from rustforge.models.bom import BOMEntry


class LayerKind(str, Enum):
    """Whether a layer's content survives into later build invocations."""

    CACHED = "cached"  # restored and reused across builds
    EPHEMERAL = "ephemeral"  # valid only within the build that produced it


class LayerState(str, Enum):
    """Reuse-or-rebuild states. Everything but UNCHECKED is terminal."""

    UNCHECKED = "unchecked"
    REUSED = "reused"
    REBUILT = "rebuilt"
    FAILED = "failed"


class FingerprintInputs(BaseModel):
    """Base for the typed inputs that determine a layer's content.

    Strings are whitespace-stripped on construction so that an unchanged
    value never yields a different fingerprint.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class RustupInitInputs(FingerprintInputs):
    dependency_id: str
    version: str
    checksum: str


class CargoInputs(FingerprintInputs):
    """The Cargo layer has no inputs beyond its own name."""


class RustupInputs(FingerprintInputs):
    rustup_init_version: str
    profile: str
    arguments: tuple[str, ...] = ()
    # the build that last populated CARGO_HOME; a fresh Cargo layer has
    # lost the rustup binaries and needs rustup-init to run again
    cargo_build_id: str = ""


class RustInputs(FingerprintInputs):
    toolchain: str
    profile: str
    target: str = ""
    toolchain_file_hash: str
    installed: str


class LayerMetadata(BaseModel):
    """What is persisted next to a layer directory after a successful build."""

    model_config = ConfigDict(frozen=True)

    name: str
    fingerprint: str
    inputs: dict[str, Any]
    kind: LayerKind
    build_id: str
    bom: BOMEntry | None = None
