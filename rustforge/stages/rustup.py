"""Rustup layer.

Runs ``rustup-init`` from the search path with a default toolchain of
``none``, so rustup itself is installed but no Rust toolchain yet. The
layer becomes RUSTUP_HOME; the binaries land in CARGO_HOME.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rustforge.core.environment import (
    CARGO_HOME,
    RUSTUP_HOME,
    rename_env_script,
    write_layer_env,
)
from rustforge.errors import StageOrderError, SubprocessError
from rustforge.models.bom import BOMEntry
from rustforge.models.layers import RustupInputs
from rustforge.stages.base import BaseStage, StageContext, version_token
from rustforge.stages.cargo import LAYER_NAME as CARGO_LAYER

logger = logging.getLogger(__name__)

LAYER_NAME = "Rustup"


class RustupStage(BaseStage):
    """Installs rustup with the configured profile.

    Parameters
    ----------
    rustup_init_version:
        Version of the resolved rustup-init artifact.
    """

    def __init__(self, rustup_init_version: str) -> None:
        self.rustup_init_version = rustup_init_version

    @property
    def name(self) -> str:
        return LAYER_NAME

    def prepare_environment(self, ctx: StageContext, layer_path: Path) -> None:
        ctx.env.override(RUSTUP_HOME, layer_path)

    def fingerprint_inputs(self, ctx: StageContext) -> RustupInputs:
        return RustupInputs(
            rustup_init_version=self.rustup_init_version,
            profile=ctx.config.rust_profile,
            arguments=tuple(ctx.config.rustup_init_arguments()),
            cargo_build_id=ctx.layer_build_id(CARGO_LAYER),
        )

    def rebuild(self, ctx: StageContext, layer_path: Path) -> BOMEntry:
        cargo_home = ctx.env.get(CARGO_HOME)
        if not cargo_home:
            raise StageOrderError("CARGO_HOME must be set before installing rustup")

        logger.info("Installing Rustup")
        try:
            ctx.run(
                "rustup-init",
                *ctx.config.rustup_init_arguments(),
                cwd=layer_path,
                show_output=True,
            )
        except SubprocessError as exc:
            raise exc.wrap("unable to run rustup-init")

        # rustup-init writes $CARGO_HOME/env, which collides with the
        # host's reserved env directory name
        rename_env_script(Path(cargo_home))

        write_layer_env(layer_path, overrides={RUSTUP_HOME: layer_path})

        output = ctx.run("rustup", "--version")
        version = version_token(output, "rustup")
        return BOMEntry.for_tool(
            id="rustup", name="Rustup", version=version, layer=self.name, vendor="rust"
        )
