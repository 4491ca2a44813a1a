"""Buildpack catalog models — dependencies and configuration options."""

from __future__ import annotations

import hashlib
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from rustforge.errors import CatalogError

WILDCARD_STACK = "*"


class ArtifactDescriptor(BaseModel):
    """A downloadable binary dependency and its integrity checksum.

    ``id`` is the logical name the resolver matches on; ``stacks`` are the
    platform tags the artifact is valid for.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    name: str = ""
    version: str
    stacks: frozenset[str] = frozenset()
    uri: str
    checksum: str
    checksum_algorithm: str = "sha256"
    purl: str = ""
    cpes: tuple[str, ...] = ()
    licenses: tuple[str, ...] = ()

    @field_validator("checksum_algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        value = value.lower()
        if value not in hashlib.algorithms_available:
            raise ValueError(f"unsupported checksum algorithm {value!r}")
        return value

    @field_validator("checksum")
    @classmethod
    def _lower_hex(cls, value: str) -> str:
        return value.lower()

    def supports(self, stack_id: str) -> bool:
        """Whether this artifact is valid on *stack_id*."""
        return stack_id in self.stacks or WILDCARD_STACK in self.stacks

    @property
    def filename(self) -> str:
        """The last path segment of the URI."""
        return self.uri.rstrip("/").rsplit("/", 1)[-1] or self.id


class ConfigurationOption(BaseModel):
    """A named configuration option declared by the buildpack."""

    model_config = ConfigDict(frozen=True)

    name: str
    default: str = ""
    description: str = ""
    build: bool = False
    launch: bool = False


class Catalog(BaseModel):
    """The static, pre-loaded catalog read once per build invocation."""

    model_config = ConfigDict(frozen=True)

    dependencies: tuple[ArtifactDescriptor, ...] = ()
    configurations: tuple[ConfigurationOption, ...] = ()

    @classmethod
    def from_toml(cls, path: Path) -> "Catalog":
        """Load ``[metadata.dependencies]`` and ``[metadata.configurations]``."""
        try:
            with open(path, "rb") as fh:
                document = tomllib.load(fh)
        except FileNotFoundError as exc:
            raise CatalogError(f"catalog not found: {path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise CatalogError(f"unable to parse {path}: {exc}") from exc
        return cls.from_metadata(document.get("metadata", {}))

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "Catalog":
        dependencies = [
            _normalize_dependency(raw) for raw in metadata.get("dependencies", [])
        ]
        try:
            return cls(
                dependencies=tuple(dependencies),
                configurations=tuple(metadata.get("configurations", [])),
            )
        except ValidationError as exc:
            raise CatalogError(f"invalid catalog metadata: {exc}") from exc

    def option(self, name: str) -> ConfigurationOption | None:
        for opt in self.configurations:
            if opt.name == name:
                return opt
        return None


def _normalize_dependency(raw: dict[str, Any]) -> dict[str, Any]:
    """Accept the ``sha256 = ...`` shorthand used by buildpack.toml files."""
    entry = dict(raw)
    if "sha256" in entry and "checksum" not in entry:
        entry["checksum"] = entry.pop("sha256")
        entry.setdefault("checksum_algorithm", "sha256")
    return entry
