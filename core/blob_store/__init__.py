# Path: core/blob_store/__init__.py
# Purpose: Package initializer for blob store interfaces and implementations.
# Layer: core/blob_store.
# Details: Exposes the base contract, the S3 store, and the in-memory store.

from .base import BlobStore
from .memory_store import InMemoryBlobStore
from .s3_store import S3BlobStore

__all__ = ["BlobStore", "InMemoryBlobStore", "S3BlobStore"]
