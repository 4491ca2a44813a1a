"""rustup-init dependency layer.

Materializes the resolved ``rustup-init`` artifact through the content cache
and installs it as ``<layer>/bin/rustup-init``. The layer is rebuilt only
when the resolved artifact's version or checksum changes.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from rustforge.core.content_cache import ContentCache
from rustforge.models.bom import BOMEntry
from rustforge.models.catalog import ArtifactDescriptor
from rustforge.models.layers import RustupInitInputs
from rustforge.stages.base import BaseStage, StageContext

logger = logging.getLogger(__name__)

BINARY_NAME = "rustup-init"


class RustupInitStage(BaseStage):
    """Installs the version-manager installer binary onto the search path."""

    def __init__(self, descriptor: ArtifactDescriptor, cache: ContentCache) -> None:
        self.descriptor = descriptor
        self.cache = cache

    @property
    def name(self) -> str:
        return self.descriptor.id

    def prepare_environment(self, ctx: StageContext, layer_path: Path) -> None:
        ctx.env.prepend_path(layer_path / "bin")

    def fingerprint_inputs(self, ctx: StageContext) -> RustupInitInputs:
        return RustupInitInputs(
            dependency_id=self.descriptor.id,
            version=self.descriptor.version,
            checksum=f"{self.descriptor.checksum_algorithm}:{self.descriptor.checksum}",
        )

    def rebuild(self, ctx: StageContext, layer_path: Path) -> BOMEntry:
        artifact = self.cache.materialize(self.descriptor)

        target = layer_path / "bin" / BINARY_NAME
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Copying to %s", target.parent)
        shutil.copyfile(artifact, target)
        target.chmod(0o755)

        return BOMEntry(
            id=self.descriptor.id,
            name=self.descriptor.name or self.descriptor.id,
            version=self.descriptor.version,
            layer=self.name,
            checksum=f"{self.descriptor.checksum_algorithm}:{self.descriptor.checksum}",
            purl=self.descriptor.purl,
            cpes=self.descriptor.cpes,
            licenses=self.descriptor.licenses,
        )
