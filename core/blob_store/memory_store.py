# Path: core/blob_store/memory_store.py
# Purpose: Provide an in-process blob store.
# Layer: core/blob_store.
# Details: Lock-guarded dictionary used for offline runs and tests.

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .base import BlobStore


class InMemoryBlobStore(BlobStore):
    """Dictionary-backed blob store that is safe to share between worker threads."""

    def __init__(self, base_url: str = "memory://blobs") -> None:
        self.name = "memory"
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._objects[key] = bytes(data)

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._objects[key]

    def list(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            keys = list(self._objects)
        return sorted(key for key in keys if prefix is None or key.startswith(prefix))

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"
