"""Rust toolchain layer.

Runs ``rustup`` from the search path to install a toolchain, optionally
from a pinned ``rust-toolchain.toml``/``rust-toolchain`` file, and an
optional cross-compilation target.

The toolchain lands in RUSTUP_HOME, not in this layer, so the layer only
holds a marker file. Its fingerprint includes the live output of
``rustup check`` taken before the reuse decision, so upstream releases
trigger a rebuild even when no configuration changed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import cast

from rustforge.core.environment import CARGO_HOME
from rustforge.core.hasher import file_listing_hash
from rustforge.core.layer import FingerprintedLayer, write_marker
from rustforge.errors import StageOrderError, SubprocessError
from rustforge.models.bom import BOMEntry
from rustforge.models.layers import FingerprintInputs, RustInputs
from rustforge.stages.base import BaseStage, StageContext, version_token

logger = logging.getLogger(__name__)

LAYER_NAME = "Rust"
TOOLCHAIN_FILES = ("rust-toolchain.toml", "rust-toolchain")

# rustup refuses to replace proxies it did not create itself
_STALE_PROXIES = ("rustfmt", "cargo-fmt")


def find_toolchain_file(app_dir: Path) -> Path:
    """The pinned toolchain file rustup would read, preferring the .toml form.

    Returns the preferred path even when neither exists.
    """
    for name in TOOLCHAIN_FILES:
        candidate = app_dir / name
        if candidate.exists():
            return candidate
    return app_dir / TOOLCHAIN_FILES[0]


class RustStage(BaseStage):
    """Installs the Rust toolchain and optional target through rustup."""

    @property
    def name(self) -> str:
        return LAYER_NAME

    def prepare_environment(self, ctx: StageContext, layer_path: Path) -> None:
        cargo_home = ctx.env.get(CARGO_HOME)
        if not cargo_home or not ctx.env.on_search_path(Path(cargo_home) / "bin"):
            raise StageOrderError(
                "rustup is not reachable: the Cargo and Rustup layers must be "
                "contributed before the Rust layer"
            )

    def _installed(self, ctx: StageContext) -> str:
        try:
            return ctx.run("rustup", "check").strip()
        except SubprocessError as exc:
            raise exc.wrap("unable to run `rustup check`")

    def fingerprint_inputs(self, ctx: StageContext) -> RustInputs:
        config = ctx.config
        return RustInputs(
            toolchain=config.rust_toolchain,
            profile=config.rust_profile,
            target=config.rust_target,
            toolchain_file_hash=file_listing_hash(find_toolchain_file(ctx.app_dir)),
            installed=self._installed(ctx),
        )

    def rebuild(self, ctx: StageContext, layer_path: Path) -> BOMEntry:
        logger.info("Installing Rust")
        config = ctx.config

        write_marker(layer_path)
        self._remove_stale_proxies(ctx)

        pinned = find_toolchain_file(ctx.app_dir).exists()
        if pinned:
            # installs the configured toolchain as the default before the pinned one
            self._rustup(
                ctx, layer_path, "default", config.rust_toolchain,
                operation="unable to run `rustup default`",
            )
            # rustup reads the pinned file relative to its working directory
            self._rustup(ctx, ctx.app_dir, "show", operation="unable to install rust from toolchain file")

        if not pinned or config.profile_set or config.toolchain_set:
            self._rustup(
                ctx, layer_path,
                "toolchain", "install", f"--profile={config.rust_profile}", config.rust_toolchain,
                operation="unable to run `rustup toolchain install`",
            )

        if config.rust_target:
            self._rustup(
                ctx, layer_path,
                "target", "add", f"--toolchain={config.rust_toolchain}", config.rust_target,
                operation="unable to run `rustup target add`",
            )

        output = ctx.run("rustc", "--version", cwd=ctx.app_dir)
        version = version_token(output, "rustc")
        return BOMEntry.for_tool(
            id="rust", name="Rust", version=version, layer=self.name, vendor="rust"
        )

    def finish(
        self, ctx: StageContext, layer: FingerprintedLayer, inputs: FingerprintInputs
    ) -> None:
        # record what is installed now, so the next pre-check compares against it
        installed = self._installed(ctx)
        layer.refresh(cast(RustInputs, inputs).model_copy(update={"installed": installed}))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _rustup(ctx: StageContext, cwd: Path, *args: str, operation: str) -> None:
        try:
            ctx.run("rustup", "-q", *args, cwd=cwd, show_output=True)
        except SubprocessError as exc:
            raise exc.wrap(operation)

    @staticmethod
    def _remove_stale_proxies(ctx: StageContext) -> None:
        cargo_home = ctx.env.get(CARGO_HOME)
        if not cargo_home:
            return
        for proxy in _STALE_PROXIES:
            (Path(cargo_home) / "bin" / proxy).unlink(missing_ok=True)
