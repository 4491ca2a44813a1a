"""Checksum-verified download cache for catalog artifacts.

Storage layout: {root}/{checksum}/{filename} with a {root}/{checksum}.json
record beside it. Entries are content addressed: they are never
overwritten with different bytes and never evicted by the core.

Downloads stream into a temporary file in the destination directory, are
verified, and only then renamed into place. The rename is the only
concurrency guard between builds sharing one cache root.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests
from pydantic import BaseModel, ConfigDict

from rustforge.core.hasher import file_digest
from rustforge.errors import FetchError, IntegrityError
from rustforge.models.catalog import ArtifactDescriptor

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Iterable[bytes]]

_CHUNK_SIZE = 1 << 16
_HTTP_TIMEOUT = (10, 300)


class CachedArtifact(BaseModel):
    """Record of a verified artifact in the cache."""

    model_config = ConfigDict(frozen=True)

    checksum: str
    checksum_algorithm: str
    local_path: Path
    uri: str
    verified: bool = True


def fetch_uri(uri: str) -> Iterator[bytes]:
    """Stream the bytes behind *uri*. ``file://`` reads from local disk."""
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
        try:
            with open(path, "rb") as fh:
                yield from iter(lambda: fh.read(_CHUNK_SIZE), b"")
        except OSError as exc:
            raise FetchError(f"unable to read {path}: {exc}") from exc
        return

    try:
        with requests.get(uri, stream=True, timeout=_HTTP_TIMEOUT) as response:
            response.raise_for_status()
            yield from response.iter_content(chunk_size=_CHUNK_SIZE)
    except requests.RequestException as exc:
        raise FetchError(f"unable to download {uri}: {exc}") from exc


class ContentCache:
    """Materializes artifact descriptors as local, verified files.

    Parameters
    ----------
    root:
        Cache directory, may be shared between builds.
    fetch:
        Callable streaming the bytes behind a URI. Defaults to
        :func:`fetch_uri` (requests for http(s), direct reads for file://).
    """

    def __init__(self, root: Path, fetch: Fetcher | None = None) -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FetchError(f"unable to create download cache {self._root}: {exc}") from exc
        self._fetch = fetch or fetch_uri

    @property
    def root(self) -> Path:
        return self._root

    def _entry_dir(self, descriptor: ArtifactDescriptor) -> Path:
        return self._root / descriptor.checksum

    def _record_path(self, descriptor: ArtifactDescriptor) -> Path:
        return self._root / f"{descriptor.checksum}.json"

    def artifact_path(self, descriptor: ArtifactDescriptor) -> Path:
        return self._entry_dir(descriptor) / descriptor.filename

    # ------------------------------------------------------------------
    # Materialize
    # ------------------------------------------------------------------

    def materialize(self, descriptor: ArtifactDescriptor) -> Path:
        """Return a local path whose bytes hash to ``descriptor.checksum``.

        Reuses a cached copy after re-verifying it; otherwise downloads,
        verifies and atomically publishes a fresh copy.
        """
        path = self.artifact_path(descriptor)
        if path.exists():
            actual = file_digest(path, descriptor.checksum_algorithm)
            if actual == descriptor.checksum:
                logger.info("Reusing cached %s %s", descriptor.id, descriptor.version)
                return path
            logger.warning(
                "Cached %s at %s failed verification (%s != %s); downloading again",
                descriptor.id, path, actual, descriptor.checksum,
            )
            path.unlink(missing_ok=True)
            self._record_path(descriptor).unlink(missing_ok=True)

        logger.info("Downloading %s %s from %s", descriptor.id, descriptor.version, descriptor.uri)
        self._download(descriptor, path)
        self._write_record(descriptor, path)
        return path

    def _download(self, descriptor: ArtifactDescriptor, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        digest = hashlib.new(descriptor.checksum_algorithm)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                for chunk in self._fetch(descriptor.uri):
                    digest.update(chunk)
                    out.write(chunk)

            actual = digest.hexdigest()
            if actual != descriptor.checksum:
                raise IntegrityError(
                    f"checksum mismatch for {descriptor.uri}",
                    context={
                        "expected": f"{descriptor.checksum_algorithm}:{descriptor.checksum}",
                        "actual": f"{descriptor.checksum_algorithm}:{actual}",
                    },
                )
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.debug("Published %s", path)

    def _write_record(self, descriptor: ArtifactDescriptor, path: Path) -> None:
        record = CachedArtifact(
            checksum=descriptor.checksum,
            checksum_algorithm=descriptor.checksum_algorithm,
            local_path=path,
            uri=descriptor.uri,
        )
        target = self._record_path(descriptor)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as out:
                out.write(record.model_dump_json(indent=2))
            os.replace(tmp_name, target)
        finally:
            Path(tmp_name).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def lookup(self, descriptor: ArtifactDescriptor) -> CachedArtifact | None:
        """Return the cache record for *descriptor*, if one was written."""
        record = self._record_path(descriptor)
        if not record.exists():
            return None
        return CachedArtifact.model_validate_json(record.read_text(encoding="utf-8"))
