import threading
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np
import pytest
from PIL import Image

from config.settings import PipelineSettings
from core.blob_store import InMemoryBlobStore
from core.embedders import PixelEmbedder
from core.indexing import IngestPipeline
from core.search import QueryPipeline
from core.vector_store import InMemoryVectorStore

COLLECTION = "images"

RED = (220, 20, 20)
GREEN = (20, 200, 40)
BLUE = (30, 40, 210)


def write_png(path: Path, color: Tuple[int, int, int], size: Tuple[int, int] = (16, 16)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="PNG")
    return path


class CountingEmbedder(PixelEmbedder):
    """PixelEmbedder that records the size of every batch it receives."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[int] = []
        self._lock = threading.Lock()

    def predict_batch(self, images: Sequence[Image.Image]) -> np.ndarray:
        with self._lock:
            self.calls.append(len(images))
        return super().predict_batch(images)

    @property
    def images_embedded(self) -> int:
        return sum(self.calls)


@pytest.fixture()
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture()
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore(base_url="http://blobs.test/bucket")


@pytest.fixture()
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(io_workers=4, compute_workers=2, network_workers=2, download_workers=2)


@pytest.fixture()
def image_tree(tmp_path: Path) -> Path:
    root = tmp_path / "images"
    write_png(root / "red.png", RED)
    write_png(root / "nested" / "green.png", GREEN)
    write_png(root / "nested" / "deeper" / "blue.png", BLUE)
    (root / "notes.txt").write_text("not an image")
    return root


@pytest.fixture()
def ingest_pipeline(embedder, blob_store, vector_store, pipeline_settings) -> IngestPipeline:
    return IngestPipeline(
        embedder=embedder,
        blob_store=blob_store,
        vector_store=vector_store,
        collection=COLLECTION,
        settings=pipeline_settings,
        batch_size=2,
    )


@pytest.fixture()
def query_pipeline(embedder, blob_store, vector_store, pipeline_settings) -> QueryPipeline:
    return QueryPipeline(
        embedder=embedder,
        blob_store=blob_store,
        vector_store=vector_store,
        collection=COLLECTION,
        settings=pipeline_settings,
        batch_size=4,
    )
