# Path: core/models/domain.py
# Purpose: Define domain models shared across hashing, embedding, indexing, and search workflows.
# Layer: core/models.
# Details: Lightweight dataclasses carry items between pipeline stages and out to CLI/API layers.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
from PIL import Image

from core.errors import ItemFailure, PayloadError
from core.hashing import point_id


@dataclass
class HashedImage:
    """An image after content hashing and the blob existence check.

    ``image`` holds decoded RGB pixels only when the item still needs embedding.
    """

    path: Path
    relative_path: str
    content_hash: str
    key: str
    stored: bool
    image: Optional[Image.Image] = None


@dataclass
class EmbeddedImage:
    """A hashed image paired with its embedding vector."""

    source: HashedImage
    vector: np.ndarray


@dataclass
class IndexedPoint:
    """A point as written to the vector index."""

    id: str
    vector: List[float]
    payload: Dict[str, str]

    @classmethod
    def from_embedded(cls, item: EmbeddedImage, url: str) -> "IndexedPoint":
        source = item.source
        return cls(
            id=point_id(source.content_hash),
            vector=[float(x) for x in np.asarray(item.vector, dtype=np.float32)],
            payload={"hash": source.content_hash, "path": source.relative_path, "url": url},
        )


@dataclass(frozen=True)
class SearchParams:
    """Parameters forwarded to the recommend query."""

    limit: int = 100
    score_threshold: float = 0.5
    exact: bool = False
    hnsw_ef: int = 32


@dataclass
class SearchResult:
    """Typed view over a scored point returned by the vector index."""

    id: str
    score: float
    path: str
    hash: str
    url: str

    REQUIRED_FIELDS = ("path", "hash", "url")

    @classmethod
    def from_payload(cls, id: Any, score: float, payload: Optional[Mapping[str, Any]]) -> "SearchResult":
        """Build a result from a raw payload, failing if a required field is absent."""

        payload = payload or {}
        missing = [name for name in cls.REQUIRED_FIELDS if payload.get(name) is None]
        if missing:
            raise PayloadError(f"Point {id} is missing payload field(s): {', '.join(missing)}")
        return cls(
            id=str(id),
            score=float(score),
            path=str(payload["path"]),
            hash=str(payload["hash"]),
            url=str(payload["url"]),
        )


@dataclass
class CollectionInfo:
    """Summary of a vector index collection."""

    name: str
    dim: int
    points_count: int


@dataclass
class TagGroup:
    """Probe images sharing a tag (their folder name).

    ``subdir`` is the folder's POSIX path relative to the query input and names the
    output sub-directory, so equally named folders in different branches stay apart.
    """

    tag: str
    files: List[Path] = field(default_factory=list)
    subdir: str = ""

    @property
    def output_subdir(self) -> str:
        return self.subdir or self.tag


@dataclass
class IngestReport:
    """Counters for a single ingest run."""

    discovered: int = 0
    skipped: int = 0
    embedded: int = 0
    uploaded: int = 0
    indexed: int = 0
    failures: List[ItemFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["failures"] = [str(failure) for failure in self.failures]
        return payload


@dataclass
class GroupReport:
    """Outcome of searching and downloading for one tag group."""

    tag: str
    subdir: str = ""
    probes: int = 0
    vectors: int = 0
    matches: int = 0
    downloaded: int = 0
    failures: List[ItemFailure] = field(default_factory=list)


@dataclass
class QueryReport:
    """Outcome of a query run across all tag groups."""

    output: Path
    groups: List[GroupReport] = field(default_factory=list)

    @property
    def failures(self) -> List[ItemFailure]:
        return [failure for group in self.groups for failure in group.failures]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output": str(self.output),
            "groups": [
                {**asdict(group), "failures": [str(failure) for failure in group.failures]} for group in self.groups
            ],
        }
