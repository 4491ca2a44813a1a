"""Cargo pass-through layer.

Establishes the directory ``rustup-init`` later installs cargo and the
rustup proxies into. It has no inputs beyond its own name.
"""

from __future__ import annotations

from pathlib import Path

from rustforge.core.environment import CARGO_HOME, write_layer_env
from rustforge.models.layers import CargoInputs
from rustforge.stages.base import BaseStage, StageContext

LAYER_NAME = "Cargo"


class CargoStage(BaseStage):
    """Provides CARGO_HOME; populated as a side effect of the Rustup stage."""

    @property
    def name(self) -> str:
        return LAYER_NAME

    def prepare_environment(self, ctx: StageContext, layer_path: Path) -> None:
        ctx.env.override(CARGO_HOME, layer_path)
        ctx.env.prepend_path(layer_path / "bin")

    def fingerprint_inputs(self, ctx: StageContext) -> CargoInputs:
        return CargoInputs()

    def rebuild(self, ctx: StageContext, layer_path: Path) -> None:
        write_layer_env(layer_path, overrides={CARGO_HOME: layer_path})
        return None
