"""Bill-of-materials record for one resolved binary dependency."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BOMEntry(BaseModel):
    """Describes one installed binary for downstream provenance tracking.

    Only stages that install a binary produce one; pass-through stages
    report ``None`` instead of an empty record.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    version: str
    layer: str
    checksum: str = ""
    purl: str = ""
    cpes: tuple[str, ...] = ()
    licenses: tuple[str, ...] = ()
    found_by: str = "rustforge"

    @classmethod
    def for_tool(
        cls, *, id: str, name: str, version: str, layer: str, vendor: str
    ) -> "BOMEntry":
        """Record for a tool whose version came from a ``--version`` query."""
        return cls(
            id=id,
            name=name,
            version=version,
            layer=layer,
            purl=f"pkg:generic/{id}@{version}",
            cpes=(f"cpe:2.3:a:{vendor}:{id}:{version}:*:*:*:*:*:*:*",),
            licenses=("Apache-2.0", "MIT"),
        )
