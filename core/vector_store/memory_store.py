# Path: core/vector_store/memory_store.py
# Purpose: Provide an in-memory vector store with recommend semantics.
# Layer: core/vector_store.
# Details: Implements the collection and query contract with numpy cosine similarity.

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from core.models.domain import CollectionInfo, IndexedPoint, SearchParams, SearchResult
from .base import MAX_POSITIVE_EXAMPLES, VectorStore, iter_chunks


@dataclass
class _Collection:
    dim: int
    vectors: Dict[str, np.ndarray] = field(default_factory=dict)
    payloads: Dict[str, Dict[str, str]] = field(default_factory=dict)


class InMemoryVectorStore(VectorStore):
    """Minimal vector store compatible with the pipelines.

    Searches are always exact; the ``exact`` and ``hnsw_ef`` parameters are accepted
    and ignored. Recommend uses the average-vector strategy: positives are averaged
    and the result is ranked by cosine similarity.
    """

    def __init__(self) -> None:
        self.name = "memory"
        self._collections: Dict[str, _Collection] = {}
        self._lock = threading.Lock()
        self.upsert_calls: List[int] = []

    def list_collections(self) -> List[str]:
        with self._lock:
            return sorted(self._collections)

    def collection_exists(self, name: str) -> bool:
        with self._lock:
            return name in self._collections

    def create_collection(self, name: str, dim: int, on_disk: bool = False, quantization: bool = False) -> None:
        with self._lock:
            if name in self._collections:
                raise ValueError(f"Collection {name} already exists.")
            self._collections[name] = _Collection(dim=dim)

    def delete_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)

    def collection_info(self, name: str) -> CollectionInfo:
        collection = self._get(name)
        with self._lock:
            return CollectionInfo(name=name, dim=collection.dim, points_count=len(collection.vectors))

    def upsert(self, name: str, points: Sequence[IndexedPoint], chunk_size: int = 32) -> None:
        """Add or overwrite points; each chunk counts as one request in ``upsert_calls``."""

        collection = self._get(name)
        for chunk in iter_chunks(points, chunk_size):
            for point in chunk:
                if len(point.vector) != collection.dim:
                    raise ValueError(
                        f"Vector dimensionality {len(point.vector)} does not match collection dimension {collection.dim}."
                    )
            with self._lock:
                for point in chunk:
                    collection.vectors[point.id] = np.asarray(point.vector, dtype=np.float32)
                    collection.payloads[point.id] = dict(point.payload)
                self.upsert_calls.append(len(chunk))

    def recommend(self, name: str, positives: Sequence[np.ndarray], params: SearchParams) -> List[SearchResult]:
        if not positives:
            raise ValueError("At least one positive example is required.")
        if len(positives) > MAX_POSITIVE_EXAMPLES:
            raise ValueError(f"At most {MAX_POSITIVE_EXAMPLES} positive examples are accepted, got {len(positives)}.")

        collection = self._get(name)
        with self._lock:
            ids = list(collection.vectors)
            if not ids:
                return []
            matrix = np.vstack([collection.vectors[point] for point in ids])
            payloads = [collection.payloads[point] for point in ids]

        query = np.mean(np.vstack([np.asarray(vector, dtype=np.float32) for vector in positives]), axis=0)
        if query.shape[0] != collection.dim:
            raise ValueError(f"Query dimensionality {query.shape[0]} does not match collection dimension {collection.dim}.")

        norms = np.linalg.norm(matrix, axis=1) * (np.linalg.norm(query) or 1.0)
        scores = (matrix @ query) / np.where(norms == 0, 1.0, norms)

        results: List[SearchResult] = []
        for idx in np.argsort(-scores, kind="stable"):
            score = float(scores[idx])
            if score < params.score_threshold:
                break
            results.append(SearchResult.from_payload(ids[idx], score, payloads[idx]))
            if len(results) >= params.limit:
                break
        return results

    def _get(self, name: str) -> _Collection:
        with self._lock:
            collection = self._collections.get(name)
        if collection is None:
            raise KeyError(f"Collection {name} not found")
        return collection
