"""Subprocess execution for external installers.

An installer's only contract is its exit status and its combined output.
``Executor`` is a Protocol so tests and alternative runners can stand in
for :class:`SubprocessExecutor` without subclassing it.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from rustforge.errors import SubprocessError

logger = logging.getLogger(__name__)

OUTPUT_INDENT = 3


class Execution(BaseModel):
    """A single command invocation."""

    model_config = ConfigDict(frozen=True)

    command: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] = Field(default_factory=dict, repr=False)

    def describe(self) -> str:
        return " ".join((self.command, *self.args))


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    exit_code: int
    output: str = ""


@runtime_checkable
class Executor(Protocol):
    """Protocol for running external commands.

    Implementations raise :class:`SubprocessError` on a non-zero exit.
    """

    def execute(self, execution: Execution) -> ExecutionResult:
        ...


def indent(text: str, width: int = OUTPUT_INDENT) -> str:
    """Indent every line of *text*, blank ones included."""
    pad = " " * width
    return "\n".join(pad + line for line in text.splitlines())


class SubprocessExecutor:
    """Runs commands synchronously with captured, merged output.

    There is no timeout; a hung installer is ended by the host.
    """

    def execute(self, execution: Execution) -> ExecutionResult:
        logger.debug("Executing %s (cwd=%s)", execution.describe(), execution.cwd)
        try:
            completed = subprocess.run(
                [execution.command, *execution.args],
                cwd=execution.cwd,
                env=dict(execution.env) or None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise SubprocessError(
                f"unable to start {execution.command}: {exc}",
                command=execution.command,
                args=execution.args,
            ) from exc

        output = completed.stdout or ""
        if output.strip():
            logger.debug("%s output:\n%s", execution.command, indent(output.rstrip()))

        if completed.returncode != 0:
            raise SubprocessError(
                f"error executing '{execution.describe()}' (exit status {completed.returncode})",
                command=execution.command,
                args=execution.args,
                exit_code=completed.returncode,
                output=output,
            )
        return ExecutionResult(exit_code=completed.returncode, output=output)
