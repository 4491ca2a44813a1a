"""Abstract base stage with enforced lifecycle.

Every concrete stage implements ``fingerprint_inputs()`` and ``rebuild()``.
The ``contribute()`` wrapper is **not overridable**; it enforces the
canonical ordering:

    prepare_environment -> fingerprint_inputs -> reuse_or_rebuild -> finish

so that every stage extends the shared environment even when its layer is
reused, and every rebuild goes through the fingerprinted layer engine.
"""

from __future__ import annotations

import abc
import logging
from pathlib import Path
from typing import ClassVar, final

from pydantic import BaseModel, ConfigDict

from rustforge.config import BuildConfig
from rustforge.core.environment import EnvironmentAccumulator
from rustforge.core.executor import Execution, Executor, indent
from rustforge.core.layer import FingerprintedLayer
from rustforge.errors import LayerError, RustforgeError, SubprocessError
from rustforge.models.bom import BOMEntry
from rustforge.models.layers import FingerprintInputs, LayerKind
from rustforge.models.results import StageOutcome

logger = logging.getLogger(__name__)


class StageContext(BaseModel):
    """Explicit per-build state handed to every stage in order.

    ``env`` is the single environment accumulator of the build; stages
    both read and extend it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    app_dir: Path
    layers_dir: Path
    build_id: str
    config: BuildConfig
    env: EnvironmentAccumulator
    executor: Executor

    def run(
        self,
        command: str,
        *args: str,
        cwd: Path | None = None,
        show_output: bool = False,
    ) -> str:
        """Execute *command* with the accumulated environment; return its output."""
        result = self.executor.execute(
            Execution(command=command, args=args, cwd=cwd, env=self.env.as_env())
        )
        if show_output and result.output.strip():
            logger.info("%s", indent(result.output.rstrip()))
        return result.output

    def layer_build_id(self, name: str) -> str:
        """The build that last populated layer *name*, or "" if never."""
        metadata = FingerprintedLayer(self.layers_dir, name).read_metadata()
        return metadata.build_id if metadata else ""


def version_token(output: str, command: str) -> str:
    """Second whitespace-delimited token of a ``--version`` response."""
    tokens = output.strip().split()
    if len(tokens) < 2:
        raise SubprocessError(
            f"unexpected output from '{command} --version'",
            command=command,
            args=("--version",),
            output=output,
        )
    return tokens[1]


class BaseStage(abc.ABC):
    """Abstract base for all pipeline stages.

    Subclasses **must** implement:
        * ``name`` — layer name, unique within the build.
        * ``fingerprint_inputs(ctx)`` — the typed inputs of the layer.
        * ``rebuild(ctx, layer_path)`` — (re)populate the layer.

    Subclasses **may** override:
        * ``kind`` — CACHED (default) or EPHEMERAL.
        * ``prepare_environment(ctx, layer_path)`` — extend ``ctx.env``.
        * ``finish(ctx, layer, inputs)`` — work after reuse or rebuild.

    Subclasses **must not** override ``contribute()``.
    """

    kind: ClassVar[LayerKind] = LayerKind.CACHED

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Layer name (e.g. ``'Rust'``)."""
        ...

    @abc.abstractmethod
    def fingerprint_inputs(self, ctx: StageContext) -> FingerprintInputs:
        ...

    @abc.abstractmethod
    def rebuild(self, ctx: StageContext, layer_path: Path) -> BOMEntry | None:
        """Populate the freshly reset *layer_path*.

        Returns the layer's BOM record, or None if it installs no binary.
        """
        ...

    def prepare_environment(self, ctx: StageContext, layer_path: Path) -> None:
        """Extend the shared environment. Runs whether or not the layer is reused."""

    def finish(
        self, ctx: StageContext, layer: FingerprintedLayer, inputs: FingerprintInputs
    ) -> None:
        """Hook run after a successful reuse or rebuild."""

    # ------------------------------------------------------------------
    # Lifecycle (NOT overridable)
    # ------------------------------------------------------------------

    @final
    def contribute(self, ctx: StageContext) -> StageOutcome:
        """Run the full stage lifecycle.  **Do not override.**"""
        layer = FingerprintedLayer(
            ctx.layers_dir, self.name, kind=self.kind, build_id=ctx.build_id
        )
        operation = f"unable to contribute {self.name} layer"
        try:
            self.prepare_environment(ctx, layer.path)
            inputs = self.fingerprint_inputs(ctx)
            outcome = layer.reuse_or_rebuild(
                inputs, lambda path: self.rebuild(ctx, path)
            )
            self.finish(ctx, layer, inputs)
        except RustforgeError as exc:
            raise exc.wrap(operation) from exc
        except OSError as exc:
            raise LayerError(f"{exc}", operations=(operation,)) from exc

        logger.info(
            "%s [%s] %s", self.name, outcome.state.value, outcome.fingerprint[:12]
        )
        return StageOutcome(
            name=self.name,
            state=outcome.state,
            path=outcome.path,
            bom=outcome.bom,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} kind={self.kind.value}>"
