"""Error taxonomy for rustforge builds.

Every failure is fatal to the build that raised it. Errors are wrapped with
the operation that failed as they travel outward, but ``wrap()`` always
returns an instance of the same class so callers can still tell a fetch
failure from a subprocess failure at the top level.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

_E = TypeVar("_E", bound="RustforgeError")


class RustforgeError(RuntimeError):
    """Base error carrying the chain of operations that failed."""

    def __init__(
        self,
        message: str,
        *,
        operations: tuple[str, ...] = (),
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operations = operations
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [*self.operations, self.message]
        text = "\n".join(parts)
        for key, value in self.context.items():
            if value:
                text += f"\n  {key}: {value}"
        return text

    def wrap(self: _E, operation: str) -> _E:
        """Return a copy of this error prefixed with *operation*."""
        wrapped = type(self).__new__(type(self))
        RustforgeError.__init__(
            wrapped,
            self.message,
            operations=(operation, *self.operations),
            context=self.context,
        )
        for key, value in vars(self).items():
            if key not in ("message", "operations", "context"):
                setattr(wrapped, key, value)
        wrapped.__cause__ = self
        return wrapped


class ConfigParseError(RustforgeError):
    """Raised when a configuration value cannot be parsed."""


class CatalogError(RustforgeError):
    """Raised when the buildpack catalog is missing or malformed."""


class ResolutionError(RustforgeError):
    """Raised when the catalog cannot yield exactly one dependency."""


class DependencyNotFoundError(ResolutionError):
    """No catalog entry matches id, version constraint and stack."""


class AmbiguousDependencyError(ResolutionError):
    """More than one catalog entry matches id, version constraint and stack."""


class FetchError(RustforgeError):
    """Raised when an artifact cannot be downloaded."""


class IntegrityError(RustforgeError):
    """Raised when artifact bytes do not match the declared checksum."""


class SubprocessError(RustforgeError):
    """Raised when an external command exits non-zero or cannot start."""

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        args: tuple[str, ...] = (),
        exit_code: int | None = None,
        output: str = "",
        operations: tuple[str, ...] = (),
    ) -> None:
        super().__init__(
            message,
            operations=operations,
            context={"Combined Output": output.strip()},
        )
        self.command = command
        self.arguments = args
        self.exit_code = exit_code
        self.output = output


class LayerError(RustforgeError):
    """Raised when layer storage or metadata cannot be handled."""


class StageOrderError(RustforgeError):
    """Raised when a stage starts before its upstream binaries are reachable."""
