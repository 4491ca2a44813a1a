"""Shared test fixtures for rustforge."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from rustforge.config import BuildConfig
from rustforge.core.content_cache import ContentCache
from rustforge.core.environment import CARGO_HOME, EnvironmentAccumulator
from rustforge.core.executor import Execution, ExecutionResult
from rustforge.errors import SubprocessError
from rustforge.models.catalog import ArtifactDescriptor, Catalog
from rustforge.stages.base import StageContext

STACK_ID = "io.buildpacks.stacks.jammy"

RUSTUP_VERSION_OUTPUT = "rustup 1.27.1 (54dd3d00f 2024-04-24)"
RUSTC_VERSION_OUTPUT = "rustc 1.79.0 (129f3b996 2024-06-10)"
RUSTUP_CHECK_OUTPUT = "stable-x86_64-unknown-linux-gnu - Up to date : 1.79.0 (129f3b996 2024-06-10)"

RUSTUP_INIT_BYTES = b"#!/bin/sh\necho 'fake rustup-init'\n"


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep BP_* variables and any .env file of the host out of every test."""
    for name in list(os.environ):
        if name.startswith("BP_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("CNB_STACK_ID", raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Fake executor
# ---------------------------------------------------------------------------


class FakeExecutor:
    """Records executions and answers with scripted output.

    Outputs are looked up by ``(command, first_arg)`` and then by
    ``command``. Running ``rustup-init`` populates CARGO_HOME the way the
    real installer does, including its ``env`` script.
    """

    def __init__(
        self,
        outputs: dict[Any, str] | None = None,
        fail: Iterable[Any] = (),
    ) -> None:
        self.outputs: dict[Any, str] = {
            ("rustup", "--version"): RUSTUP_VERSION_OUTPUT,
            ("rustup", "check"): RUSTUP_CHECK_OUTPUT,
            ("rustc", "--version"): RUSTC_VERSION_OUTPUT,
            "rustup-init": "info: installing rustup",
        }
        self.outputs.update(outputs or {})
        self.fail = set(fail)
        self.calls: list[Execution] = []

    def execute(self, execution: Execution) -> ExecutionResult:
        self.calls.append(execution)
        key = (execution.command, execution.args[0] if execution.args else "")

        if key in self.fail or execution.command in self.fail:
            raise SubprocessError(
                f"error executing '{execution.describe()}' (exit status 1)",
                command=execution.command,
                args=execution.args,
                exit_code=1,
                output="error: simulated failure",
            )

        if execution.command == "rustup-init":
            self._install_rustup(execution)

        output = self.outputs.get(key, self.outputs.get(execution.command, ""))
        return ExecutionResult(exit_code=0, output=output)

    def commands(self) -> list[str]:
        return [call.describe() for call in self.calls]

    @staticmethod
    def _install_rustup(execution: Execution) -> None:
        cargo_home = Path(execution.env[CARGO_HOME])
        bin_dir = cargo_home / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        for tool in ("rustup", "cargo", "rustc", "rustfmt", "cargo-fmt"):
            (bin_dir / tool).write_text("", encoding="utf-8")
        (cargo_home / "env").write_text('export PATH="$CARGO_HOME/bin:$PATH"\n', encoding="utf-8")


@pytest.fixture
def executor() -> FakeExecutor:
    """Provide a FakeExecutor with the default rustup/rustc answers."""
    return FakeExecutor()


@pytest.fixture
def make_executor() -> Callable[..., FakeExecutor]:
    """Factory fixture: a FakeExecutor with extra outputs or failures."""
    return FakeExecutor


@pytest.fixture
def stack_id() -> str:
    return STACK_ID


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


@pytest.fixture
def layers_dir(tmp_path: Path) -> Path:
    path = tmp_path / "layers"
    path.mkdir()
    return path


@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


# ---------------------------------------------------------------------------
# Catalog factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_descriptor(tmp_path: Path) -> Callable[..., ArtifactDescriptor]:
    """Factory fixture: a descriptor whose file:// URI serves real bytes."""
    downloads = tmp_path / "downloads"

    def _factory(
        id: str = "rustup-init-gnu",
        version: str = "1.27.1",
        stacks: Iterable[str] = (STACK_ID,),
        content: bytes = RUSTUP_INIT_BYTES,
        **overrides: Any,
    ) -> ArtifactDescriptor:
        target = downloads / id / version / "rustup-init"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        fields: dict[str, Any] = {
            "id": id,
            "name": "rustup-init",
            "version": version,
            "stacks": frozenset(stacks),
            "uri": target.as_uri(),
            "checksum": hashlib.sha256(content).hexdigest(),
            "purl": f"pkg:generic/rustup-init@{version}",
            "licenses": ("Apache-2.0", "MIT"),
        }
        fields.update(overrides)
        return ArtifactDescriptor(**fields)

    return _factory


@pytest.fixture
def catalog(make_descriptor: Callable[..., ArtifactDescriptor]) -> Catalog:
    """A catalog with gnu and musl rustup-init entries for the test stack."""
    return Catalog(
        dependencies=(
            make_descriptor(version="1.26.0"),
            make_descriptor(version="1.27.1"),
            make_descriptor(id="rustup-init-musl", version="1.27.1"),
        ),
    )


@pytest.fixture
def content_cache(cache_dir: Path) -> ContentCache:
    return ContentCache(cache_dir)


# ---------------------------------------------------------------------------
# Stage context
# ---------------------------------------------------------------------------


@pytest.fixture
def make_stage_context(
    app_dir: Path, layers_dir: Path, executor: FakeExecutor
) -> Callable[..., StageContext]:
    """Factory fixture: a StageContext over the test directories."""

    def _factory(
        config: BuildConfig | None = None,
        env: EnvironmentAccumulator | None = None,
        build_id: str = "rf-test-build-001",
        **overrides: Any,
    ) -> StageContext:
        fields: dict[str, Any] = {
            "app_dir": app_dir,
            "layers_dir": layers_dir,
            "build_id": build_id,
            "config": config or BuildConfig(),
            "env": env or EnvironmentAccumulator({"PATH": "/usr/bin:/bin"}),
            "executor": executor,
        }
        fields.update(overrides)
        return StageContext(**fields)

    return _factory
