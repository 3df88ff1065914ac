# Path: core/vector_store/qdrant_store.py
# Purpose: Index and query image vectors in Qdrant.
# Layer: core/vector_store.
# Details: Wraps qdrant-client; payloads are converted to typed SearchResult records at this boundary.

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import numpy as np
from qdrant_client import QdrantClient, models

from core.models.domain import CollectionInfo, IndexedPoint, SearchParams, SearchResult
from .base import MAX_POSITIVE_EXAMPLES, VectorStore, iter_chunks

logger = logging.getLogger(__name__)


class QdrantStore(VectorStore):
    """Vector store backed by a Qdrant server (or qdrant-client's local mode)."""

    def __init__(self, client: QdrantClient) -> None:
        self.name = "qdrant"
        self._client = client

    @classmethod
    def connect(cls, url: str, timeout: int = 60, api_key: Optional[str] = None) -> "QdrantStore":
        """Open a client for ``url`` with a per-call timeout in seconds."""

        return cls(QdrantClient(url=url, api_key=api_key, timeout=timeout))

    def list_collections(self) -> List[str]:
        return [collection.name for collection in self._client.get_collections().collections]

    def collection_exists(self, name: str) -> bool:
        return self._client.collection_exists(collection_name=name)

    def create_collection(self, name: str, dim: int, on_disk: bool = False, quantization: bool = False) -> None:
        """Create a cosine collection, optionally on disk with int8 scalar quantization."""

        quantization_config = None
        if quantization:
            quantization_config = models.ScalarQuantization(
                scalar=models.ScalarQuantizationConfig(type=models.ScalarType.INT8, always_ram=True)
            )
        self._client.create_collection(
            collection_name=name,
            vectors_config=models.VectorParams(size=dim, distance=models.Distance.COSINE, on_disk=on_disk),
            quantization_config=quantization_config,
        )

    def delete_collection(self, name: str) -> None:
        self._client.delete_collection(collection_name=name)

    def collection_info(self, name: str) -> CollectionInfo:
        info = self._client.get_collection(collection_name=name)
        vectors: Any = info.config.params.vectors
        if isinstance(vectors, dict):
            # Named vectors: this project only ever writes the default unnamed vector.
            vectors = next(iter(vectors.values()))
        return CollectionInfo(name=name, dim=int(vectors.size), points_count=int(info.points_count or 0))

    def upsert(self, name: str, points: Sequence[IndexedPoint], chunk_size: int = 32) -> None:
        for chunk in iter_chunks(points, chunk_size):
            self._client.upsert(
                collection_name=name,
                points=[models.PointStruct(id=point.id, vector=point.vector, payload=point.payload) for point in chunk],
                wait=True,
            )

    def recommend(self, name: str, positives: Sequence[np.ndarray], params: SearchParams) -> List[SearchResult]:
        """
        Run a recommend query with the given positive examples.

        External calls:
        - qdrant_client.QdrantClient.query_points - recommend query with payloads included.
        - core/models/domain.py::SearchResult.from_payload - validates each returned payload.
        """

        if not positives:
            raise ValueError("At least one positive example is required.")
        if len(positives) > MAX_POSITIVE_EXAMPLES:
            raise ValueError(f"At most {MAX_POSITIVE_EXAMPLES} positive examples are accepted, got {len(positives)}.")

        response = self._client.query_points(
            collection_name=name,
            query=models.RecommendQuery(
                recommend=models.RecommendInput(positive=[np.asarray(vector, dtype=np.float32).tolist() for vector in positives])
            ),
            limit=params.limit,
            score_threshold=params.score_threshold,
            search_params=models.SearchParams(hnsw_ef=params.hnsw_ef, exact=params.exact),
            with_payload=True,
        )
        return [SearchResult.from_payload(point.id, point.score, point.payload) for point in response.points]
