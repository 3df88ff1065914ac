# Path: core/vector_store/base.py
# Purpose: Define the VectorStore interface for collection lifecycle, upserts, and recommend queries.
# Layer: core/vector_store.
# Details: Also provides the collection bootstrap shared by CLIs and pipelines.

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterator, List, Sequence

import numpy as np

from core.errors import DimensionMismatchError
from core.models.domain import CollectionInfo, IndexedPoint, SearchParams, SearchResult

logger = logging.getLogger(__name__)

# Upper bound on positive examples accepted by a recommend query.
MAX_POSITIVE_EXAMPLES = 32


class VectorStore(ABC):
    """Abstract base class for pluggable vector index backends."""

    name: str

    @abstractmethod
    def list_collections(self) -> List[str]:
        """Return the names of all collections."""

    @abstractmethod
    def collection_exists(self, name: str) -> bool:
        """Return True if the collection exists."""

    @abstractmethod
    def create_collection(self, name: str, dim: int, on_disk: bool = False, quantization: bool = False) -> None:
        """Create a cosine-distance collection for ``dim``-dimensional vectors."""

    @abstractmethod
    def delete_collection(self, name: str) -> None:
        """Drop a collection and all of its points."""

    @abstractmethod
    def collection_info(self, name: str) -> CollectionInfo:
        """Return dimensionality and size of a collection."""

    @abstractmethod
    def upsert(self, name: str, points: Sequence[IndexedPoint], chunk_size: int = 32) -> None:
        """Insert or overwrite points, sending at most ``chunk_size`` per request."""

    @abstractmethod
    def recommend(self, name: str, positives: Sequence[np.ndarray], params: SearchParams) -> List[SearchResult]:
        """Return points similar to the positive examples, best first."""


def iter_chunks(points: Sequence[IndexedPoint], chunk_size: int) -> Iterator[Sequence[IndexedPoint]]:
    """Split ``points`` into consecutive slices of at most ``chunk_size``."""

    if chunk_size < 1:
        raise ValueError("chunk_size must be positive.")
    for start in range(0, len(points), chunk_size):
        yield points[start : start + chunk_size]


def ensure_collection(
    store: VectorStore,
    name: str,
    dim: int,
    on_disk: bool = False,
    quantization: bool = False,
) -> bool:
    """Create the collection if it is absent and verify its dimensionality.

    Returns True when a new collection was created. Raises
    :class:`DimensionMismatchError` if an existing collection has another size.
    """

    if store.collection_exists(name):
        info = store.collection_info(name)
        if info.dim != dim:
            raise DimensionMismatchError(name, expected=dim, actual=info.dim)
        logger.info("Using collection %s (%d points, dim=%d)", name, info.points_count, info.dim)
        return False

    store.create_collection(name, dim, on_disk=on_disk, quantization=quantization)
    logger.info("Created collection %s (dim=%d, on_disk=%s, quantization=%s)", name, dim, on_disk, quantization)
    return True
