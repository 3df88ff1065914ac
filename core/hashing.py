# Path: core/hashing.py
# Purpose: Content addressing for ingested images.
# Layer: core.
# Details: BLAKE3 digests of raw file bytes drive blob keys and vector point identifiers.

from __future__ import annotations

import uuid
from pathlib import Path

from blake3 import blake3

# Fixed namespace so the same digest always maps to the same point id.
POINT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "imgtagdb/points")


def hash_file(path: Path | str) -> str:
    """Return the hex BLAKE3 digest of a file, read through a memory map."""

    hasher = blake3()
    hasher.update_mmap(str(path))
    return hasher.hexdigest()


def hash_bytes(data: bytes) -> str:
    """Return the hex BLAKE3 digest of in-memory content."""

    return blake3(data).hexdigest()


def stored_object_key(content_hash: str, path: Path | str) -> str:
    """Blob store key for the content: ``{hash}.{extension}``."""

    return f"{content_hash}{Path(path).suffix}"


def point_id(content_hash: str) -> str:
    """Deterministic (name-based) UUID used as the vector index point id."""

    return str(uuid.uuid5(POINT_NAMESPACE, content_hash))
