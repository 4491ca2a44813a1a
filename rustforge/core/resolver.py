"""Dependency resolver — picks exactly one catalog entry for this platform.

A descriptor matches when its id is equal, the stack is one of its platform
tags, and its version satisfies the constraint. Among the matches the
highest version wins; a tie at that version is ambiguous and fails closed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from rustforge.errors import AmbiguousDependencyError, DependencyNotFoundError
from rustforge.models.catalog import ArtifactDescriptor

logger = logging.getLogger(__name__)

_WILDCARDS = frozenset({"*", "x", "X"})
_NUMERIC = re.compile(r"^(\d+)(.*)$")


def _version_key(version: str) -> tuple[tuple[int, str], ...]:
    """Sort key: numeric components compare as numbers, suffixes as text."""
    key = []
    for part in version.lstrip("v").split("."):
        match = _NUMERIC.match(part)
        if match:
            key.append((int(match.group(1)), match.group(2)))
        else:
            key.append((-1, part))
    return tuple(key)


def version_satisfies(version: str, constraint: str) -> bool:
    """Check *version* against a constraint.

    Empty or ``*`` accepts anything. Otherwise each dot-separated component
    must be equal or a wildcard, and a shorter constraint matches every
    version it is a prefix of (``1`` matches ``1.27.1``).
    """
    constraint = constraint.strip().lstrip("=").strip()
    if constraint in ("", *_WILDCARDS):
        return True

    wanted = constraint.lstrip("v").split(".")
    actual = version.lstrip("v").split(".")
    if len(wanted) > len(actual):
        return False
    return all(w in _WILDCARDS or w == a for w, a in zip(wanted, actual))


class DependencyResolver:
    """Pure selection over a static, pre-loaded list of descriptors.

    Parameters
    ----------
    dependencies:
        The catalog's artifact descriptors.
    stack_id:
        The platform identifier of the current build.
    """

    def __init__(self, dependencies: Iterable[ArtifactDescriptor], stack_id: str) -> None:
        self._dependencies = tuple(dependencies)
        self._stack_id = stack_id

    @property
    def stack_id(self) -> str:
        return self._stack_id

    def resolve(self, dependency_id: str, constraint: str = "") -> ArtifactDescriptor:
        """Return the single descriptor for *dependency_id* on this stack.

        Raises DependencyNotFoundError when nothing matches and
        AmbiguousDependencyError when several entries share the best version.
        """
        candidates = [
            d for d in self._dependencies
            if d.id == dependency_id
            and d.supports(self._stack_id)
            and version_satisfies(d.version, constraint)
        ]

        if not candidates:
            raise DependencyNotFoundError(
                f"no valid dependency for {dependency_id}, {constraint or '*'}, "
                f"and {self._stack_id} in {self._describe_available()}",
                context={"id": dependency_id, "constraint": constraint, "stack": self._stack_id},
            )

        best = max(_version_key(d.version) for d in candidates)
        winners = [d for d in candidates if _version_key(d.version) == best]
        if len(winners) > 1:
            raise AmbiguousDependencyError(
                f"{len(winners)} dependencies match {dependency_id}, "
                f"{constraint or '*'}, and {self._stack_id}: "
                + ", ".join(f"{d.version} ({d.uri})" for d in winners),
                context={"id": dependency_id, "constraint": constraint, "stack": self._stack_id},
            )

        selected = winners[0]
        logger.debug(
            "Resolved %s %s for stack %s -> %s",
            dependency_id, constraint or "*", self._stack_id, selected.version,
        )
        return selected

    def _describe_available(self) -> str:
        entries = [
            f"({d.id}, {d.version}, {sorted(d.stacks)})" for d in self._dependencies
        ]
        return "[" + ", ".join(entries) + "]"
