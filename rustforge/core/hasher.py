"""Canonical hashing helpers for fingerprints and content addressing.

Fingerprints are computed over canonical JSON so that two equal input
mappings always hash the same regardless of insertion order.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from rustforge.models.layers import FingerprintInputs

_CHUNK_SIZE = 1 << 16


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_chunks(chunks: Iterable[bytes], algorithm: str = "sha256") -> str:
    digest = hashlib.new(algorithm)
    for chunk in chunks:
        digest.update(chunk)
    return digest.hexdigest()


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Hash a file's bytes without reading it into memory at once."""
    with open(path, "rb") as fh:
        return hash_chunks(iter(lambda: fh.read(_CHUNK_SIZE), b""), algorithm)


def file_listing_hash(path: Path) -> str:
    """SHA-256 over the relative names and contents of a file or directory.

    A missing path hashes as an empty listing, so "no file" is a stable
    value rather than an error.
    """
    digest = hashlib.sha256()
    if path.is_file():
        files = [path]
        root = path.parent
    elif path.is_dir():
        files = sorted(p for p in path.rglob("*") if p.is_file())
        root = path
    else:
        files = []
        root = path

    for file in files:
        digest.update(file.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_digest(file).encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()


def fingerprint_payload(layer_name: str, inputs: FingerprintInputs) -> dict[str, Any]:
    return {"layer": layer_name, "inputs": inputs.model_dump(mode="json")}


def compute_fingerprint(layer_name: str, inputs: FingerprintInputs) -> str:
    """SHA-256 of canonical(layer name + typed inputs)."""
    return sha256_hex(canonical_json_bytes(fingerprint_payload(layer_name, inputs)))
