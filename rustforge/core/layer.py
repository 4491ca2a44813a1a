"""Fingerprinted layer — the reuse-or-rebuild engine.

A layer is a named directory under the layers root plus a metadata file
``{layers_dir}/{name}.json``. No object owns a layer across builds: each
build rediscovers it by name and compares fingerprints again.

Lifecycle of ``reuse_or_rebuild()``:

    UNCHECKED -> REUSED    fingerprint, kind and content all still valid
    UNCHECKED -> REBUILT   action ran and metadata was persisted
    UNCHECKED -> FAILED    action raised; no metadata is left behind

Stale metadata is deleted before the action runs, so an interrupted
rebuild is retried next time instead of being mistaken for a cached one.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from rustforge.core.hasher import compute_fingerprint
from rustforge.errors import LayerError
from rustforge.models.bom import BOMEntry
from rustforge.models.layers import (
    FingerprintInputs,
    LayerKind,
    LayerMetadata,
    LayerState,
)

logger = logging.getLogger(__name__)

MARKER_FILE = "marker"

# Receives the (empty) layer directory; returns the BOM record, if any.
RebuildAction = Callable[[Path], BOMEntry | None]


class LayerOutcome(BaseModel):
    """Result of a reuse-or-rebuild call."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    state: LayerState
    fingerprint: str
    bom: BOMEntry | None = None


def write_marker(path: Path) -> None:
    """Write the sentinel that keeps an otherwise empty layer valid.

    Used by layers whose real output lands outside their own directory.
    """
    (path / MARKER_FILE).write_bytes(b"")


class FingerprintedLayer:
    """A persistent, named build-output slot with cache-or-rebuild semantics.

    Parameters
    ----------
    layers_dir:
        Root directory managed by the build system.
    name:
        Layer name; also the directory name.
    kind:
        CACHED layers are reused across builds; EPHEMERAL layers only
        within the build identified by *build_id*.
    build_id:
        Identifier of the current build invocation.
    """

    def __init__(
        self,
        layers_dir: Path,
        name: str,
        *,
        kind: LayerKind = LayerKind.CACHED,
        build_id: str = "",
    ) -> None:
        self.name = name
        self.kind = kind
        self.build_id = build_id
        self._layers_dir = Path(layers_dir)
        self.state = LayerState.UNCHECKED

    @property
    def path(self) -> Path:
        return self._layers_dir / self.name

    @property
    def metadata_path(self) -> Path:
        return self._layers_dir / f"{self.name}.json"

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def read_metadata(self) -> LayerMetadata | None:
        """Return persisted metadata, or None if absent or unreadable."""
        if not self.metadata_path.exists():
            return None
        try:
            return LayerMetadata.model_validate_json(
                self.metadata_path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as exc:
            logger.warning("%s: ignoring unreadable metadata %s: %s", self.name, self.metadata_path, exc)
            return None

    def _write_metadata(self, metadata: LayerMetadata) -> None:
        self._layers_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._layers_dir, prefix=f".{self.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as out:
                out.write(metadata.model_dump_json(indent=2))
            os.replace(tmp_name, self.metadata_path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise LayerError(f"unable to write metadata for layer {self.name}: {exc}") from exc

    def _has_content(self) -> bool:
        return self.path.is_dir() and any(self.path.iterdir())

    def _reusable(self, persisted: LayerMetadata, expected: str) -> bool:
        if persisted.fingerprint != expected or persisted.kind != self.kind:
            return False
        if self.kind == LayerKind.EPHEMERAL and persisted.build_id != self.build_id:
            return False
        return self._has_content()

    def _reset(self) -> None:
        self.metadata_path.unlink(missing_ok=True)
        if self.path.exists():
            shutil.rmtree(self.path)
        self.path.mkdir(parents=True)

    # ------------------------------------------------------------------
    # Reuse or rebuild
    # ------------------------------------------------------------------

    def reuse_or_rebuild(
        self, inputs: FingerprintInputs, action: RebuildAction
    ) -> LayerOutcome:
        """Reuse the layer if *inputs* are unchanged, otherwise run *action*.

        Errors raised by *action* propagate unchanged after the layer is
        marked FAILED.
        """
        self.state = LayerState.UNCHECKED
        expected = compute_fingerprint(self.name, inputs)
        persisted = self.read_metadata()
        logger.debug(
            "%s: expected=%s persisted=%s inputs=%s",
            self.name,
            expected[:12],
            persisted.fingerprint[:12] if persisted else "-",
            inputs.model_dump(mode="json"),
        )

        if persisted is not None and self._reusable(persisted, expected):
            logger.info("%s: reusing cached layer", self.name)
            self.state = LayerState.REUSED
            return LayerOutcome(
                name=self.name,
                path=self.path,
                state=self.state,
                fingerprint=expected,
                bom=persisted.bom,
            )

        logger.info("%s: contributing to layer", self.name)
        self._reset()
        try:
            bom = action(self.path)
        except Exception as exc:
            self.state = LayerState.FAILED
            logger.error("%s: rebuild failed: %s", self.name, exc)
            raise

        self._write_metadata(
            LayerMetadata(
                name=self.name,
                fingerprint=expected,
                inputs=inputs.model_dump(mode="json"),
                kind=self.kind,
                build_id=self.build_id,
                bom=bom,
            )
        )
        self.state = LayerState.REBUILT
        return LayerOutcome(
            name=self.name,
            path=self.path,
            state=self.state,
            fingerprint=expected,
            bom=bom,
        )

    def refresh(self, inputs: FingerprintInputs) -> str:
        """Re-persist metadata for *inputs* after a successful contribution.

        Used when an input can only be observed once the layer is built,
        so the next build's pre-check compares against that exact value.
        Returns the new fingerprint.
        """
        if self.state not in (LayerState.REUSED, LayerState.REBUILT):
            raise LayerError(f"cannot refresh layer {self.name} in state {self.state.value}")
        current = self.read_metadata()
        fingerprint = compute_fingerprint(self.name, inputs)
        self._write_metadata(
            LayerMetadata(
                name=self.name,
                fingerprint=fingerprint,
                inputs=inputs.model_dump(mode="json"),
                kind=self.kind,
                build_id=self.build_id,
                bom=current.bom if current else None,
            )
        )
        return fingerprint

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} kind={self.kind.value} state={self.state.value}>"
