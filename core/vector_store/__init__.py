# Path: core/vector_store/__init__.py
# Purpose: Package initializer for vector store interfaces and implementations.
# Layer: core/vector_store.
# Details: Exposes the base contract, collection bootstrap, and the Qdrant and in-memory stores.

from .base import MAX_POSITIVE_EXAMPLES, VectorStore, ensure_collection
from .memory_store import InMemoryVectorStore
from .qdrant_store import QdrantStore

__all__ = ["MAX_POSITIVE_EXAMPLES", "InMemoryVectorStore", "QdrantStore", "VectorStore", "ensure_collection"]
