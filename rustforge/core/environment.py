"""Environment accumulator threaded through the pipeline stages.

Each stage reads the accumulated environment and extends it for the next
one (search path, CARGO_HOME, RUSTUP_HOME). The process environment itself
is never mutated; executions take their environment from ``as_env()``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

PATH = "PATH"
CARGO_HOME = "CARGO_HOME"
RUSTUP_HOME = "RUSTUP_HOME"

ENV_BUILD_DIR = "env.build"
ENV_SCRIPT = "env"
ENV_SCRIPT_RENAMED = "env.sh"


class EnvironmentAccumulator:
    """Mutable environment owned by one build and passed by reference.

    Parameters
    ----------
    base:
        Starting variables. Defaults to a copy of ``os.environ``.
    """

    def __init__(self, base: Mapping[str, str] | None = None) -> None:
        self._vars: dict[str, str] = dict(os.environ if base is None else base)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self._vars.get(name, default)

    def override(self, name: str, value: str | Path) -> None:
        self._vars[name] = str(value)
        logger.debug("env %s=%s", name, value)

    def prepend_path(self, directory: Path, name: str = PATH) -> None:
        """Put *directory* first on a search-path variable, once."""
        entry = str(directory)
        parts = [p for p in self._vars.get(name, "").split(os.pathsep) if p and p != entry]
        self._vars[name] = os.pathsep.join([entry, *parts])
        logger.debug("env %s prepended %s", name, entry)

    def search_path(self) -> list[Path]:
        return [Path(p) for p in self._vars.get(PATH, "").split(os.pathsep) if p]

    def on_search_path(self, directory: Path) -> bool:
        return Path(directory) in self.search_path()

    def as_env(self) -> dict[str, str]:
        """A snapshot suitable for passing to a subprocess."""
        return dict(self._vars)


def write_layer_env(
    layer_path: Path,
    *,
    overrides: Mapping[str, str | Path] | None = None,
    prepends: Mapping[str, str | Path] | None = None,
) -> None:
    """Write CNB ``env.build`` files so later build steps see the variables."""
    env_dir = layer_path / ENV_BUILD_DIR
    env_dir.mkdir(parents=True, exist_ok=True)
    for name, value in (overrides or {}).items():
        (env_dir / f"{name}.override").write_text(str(value), encoding="utf-8")
    for name, value in (prepends or {}).items():
        (env_dir / f"{name}.prepend").write_text(str(value), encoding="utf-8")
        (env_dir / f"{name}.delim").write_text(os.pathsep, encoding="utf-8")


def rename_env_script(directory: Path) -> Path | None:
    """Move a regular ``env`` file out of the name the host reserves.

    Returns the new path, or None when there was nothing to rename.
    """
    script = directory / ENV_SCRIPT
    if not script.is_file():
        return None
    target = directory / ENV_SCRIPT_RENAMED
    os.replace(script, target)
    logger.debug("Renamed %s to %s", script, target)
    return target
