# Path: core/blob_store/base.py
# Purpose: Define the BlobStore interface for content-addressed image bytes.
# Layer: core/blob_store.
# Details: Keys are ``{hash}.{extension}``, so writing the same content twice is harmless.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional


class BlobStore(ABC):
    """Abstract key/value object store shared by every pipeline worker."""

    name: str

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if an object is stored under ``key``."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, overwriting any previous object."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under ``key``; raise ``KeyError`` if absent."""

    @abstractmethod
    def list(self, prefix: Optional[str] = None) -> List[str]:
        """Return all keys, optionally restricted to those starting with ``prefix``."""

    @abstractmethod
    def url_for(self, key: str) -> str:
        """Return a URL from which the object can be fetched directly."""
