# Path: core/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: core/models.
# Details: Exposes dataclasses used across hashing, embedding, indexing, and search layers.

from .domain import (
    CollectionInfo,
    EmbeddedImage,
    GroupReport,
    HashedImage,
    IndexedPoint,
    IngestReport,
    QueryReport,
    SearchParams,
    SearchResult,
    TagGroup,
)

__all__ = [
    "CollectionInfo",
    "EmbeddedImage",
    "GroupReport",
    "HashedImage",
    "IndexedPoint",
    "IngestReport",
    "QueryReport",
    "SearchParams",
    "SearchResult",
    "TagGroup",
]
