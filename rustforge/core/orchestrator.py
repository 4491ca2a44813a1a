"""Build orchestrator — the central coordinator for one build invocation.

The Orchestrator resolves the rustup-init dependency, wires the content
cache, the shared environment accumulator and the executor into a
StageContext, and contributes the stages strictly in order:

    rustup-init -> Cargo -> Rustup -> Rust

Each stage's fingerprint depends on side effects of the ones before it, so
nothing runs in parallel. A failure stops the build; stages already reused
or rebuilt in this invocation are left as they are.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from rustforge.config import BuildConfig, load_build_config
from rustforge.core.content_cache import ContentCache, Fetcher
from rustforge.core.environment import EnvironmentAccumulator
from rustforge.core.executor import Executor, SubprocessExecutor
from rustforge.core.resolver import DependencyResolver
from rustforge.errors import LayerError, ResolutionError
from rustforge.models.bom import BOMEntry
from rustforge.models.catalog import Catalog
from rustforge.models.results import (
    PLAN_ENTRY_RUST,
    PLAN_ENTRY_RUSTUP,
    BuildPlan,
    BuildResult,
    DetectResult,
    StageOutcome,
)
from rustforge.stages.base import BaseStage, StageContext
from rustforge.stages.cargo import CargoStage
from rustforge.stages.rust import RustStage
from rustforge.stages.rustup import RustupStage
from rustforge.stages.rustup_init import RustupInitStage

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path(".rustforge/cache")


class BuildContext(BaseModel):
    """Everything the host build system hands to one build invocation."""

    model_config = ConfigDict(frozen=True)

    app_dir: Path
    layers_dir: Path
    stack_id: str
    catalog: Catalog = Catalog()
    plan_entries: list[str] = Field(
        default_factory=lambda: [PLAN_ENTRY_RUSTUP, PLAN_ENTRY_RUST]
    )
    cache_dir: Path = DEFAULT_CACHE_DIR


def new_build_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"rf-{ts}-{uuid.uuid4().hex[:6]}"


def detect(config: BuildConfig | None = None) -> DetectResult:
    """Pass with the rustup and rust plans unless the feature is disabled."""
    config = config or load_build_config()
    if not config.rustup_enabled:
        return DetectResult(passed=False)
    return DetectResult(
        passed=True,
        plans=[
            BuildPlan(provides=[PLAN_ENTRY_RUSTUP, PLAN_ENTRY_RUST]),
            BuildPlan(provides=[PLAN_ENTRY_RUSTUP]),
        ],
    )


class Orchestrator:
    """Composes resolver, cache and stages for one build.

    Parameters
    ----------
    context:
        Directories, stack and catalog of this build.
    config:
        Build configuration. Loaded from BP_* variables if not provided.
    executor:
        Runs external commands. Defaults to :class:`SubprocessExecutor`.
    fetch:
        Optional byte source for the content cache.
    environ:
        Starting environment for the accumulator. Defaults to ``os.environ``.
    """

    def __init__(
        self,
        context: BuildContext,
        config: BuildConfig | None = None,
        *,
        executor: Executor | None = None,
        fetch: Fetcher | None = None,
        environ: Mapping[str, str] | None = None,
        build_id: str | None = None,
    ) -> None:
        self.context = context
        self.config = config or load_build_config()
        self.executor = executor or SubprocessExecutor()
        self.build_id = build_id or new_build_id()
        self._fetch = fetch

        self.resolver = DependencyResolver(context.catalog.dependencies, context.stack_id)
        self.env = EnvironmentAccumulator(environ)

    # ------------------------------------------------------------------
    # Stage plan
    # ------------------------------------------------------------------

    def plan_stages(self) -> list[BaseStage]:
        """Resolve the dependency and return the stages in execution order."""
        config = self.config
        try:
            descriptor = self.resolver.resolve(
                config.rustup_init_dependency_id, config.rustup_init_version
            )
        except ResolutionError as exc:
            raise exc.wrap("unable to find dependency")

        cache = ContentCache(self.context.cache_dir, fetch=self._fetch)
        return [
            RustupInitStage(descriptor, cache),
            CargoStage(),
            RustupStage(descriptor.version),
            RustStage(),
        ]

    def stage_context(self) -> StageContext:
        return StageContext(
            app_dir=self.context.app_dir,
            layers_dir=self.context.layers_dir,
            build_id=self.build_id,
            config=self.config,
            env=self.env,
            executor=self.executor,
        )

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> BuildResult:
        """Contribute every stage, or nothing when the feature is disabled."""
        if not self.config.rustup_enabled:
            logger.info("rustup is disabled; skipping all layers")
            return BuildResult(build_id=self.build_id, unmet=list(self.context.plan_entries))

        self.describe_configuration()
        try:
            self.context.layers_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LayerError(
                f"unable to create layers directory {self.context.layers_dir}: {exc}"
            ) from exc

        stages = self.plan_stages()
        ctx = self.stage_context()

        outcomes: list[StageOutcome] = []
        for stage in stages:
            logger.info("%s: contributing", stage.name)
            outcome = stage.contribute(ctx)
            outcomes.append(outcome)
            if outcome.bom is not None:
                self._write_bom(outcome.name, outcome.bom)

        return BuildResult(build_id=self.build_id, layers=outcomes)

    def _write_bom(self, name: str, bom: BOMEntry) -> None:
        path = self.context.layers_dir / f"{name}.sbom.json"
        logger.debug("Writing BOM at %s: %s", path, bom)
        path.write_text(bom.model_dump_json(indent=2), encoding="utf-8")

    def describe_configuration(self) -> None:
        """Log the catalog's declared options next to their effective values."""
        effective = {
            f"BP_{name.upper()}": value
            for name, value in self.config.model_dump().items()
        }
        for option in self.context.catalog.configurations:
            value = effective.get(option.name, option.default)
            logger.info(
                "  $%-26s %-16s %s", option.name, value, option.description
            )
