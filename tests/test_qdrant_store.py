"""Tests for the Qdrant-backed vector store using qdrant-client's local mode."""

import numpy as np
import pytest
from qdrant_client import QdrantClient, models

from core.errors import PayloadError
from core.hashing import point_id
from core.models import IndexedPoint, SearchParams
from core.vector_store import QdrantStore


@pytest.fixture()
def client():
    client = QdrantClient(":memory:")
    yield client
    client.close()


@pytest.fixture()
def store(client):
    return QdrantStore(client)


def make_point(name, vector):
    return IndexedPoint(
        id=point_id(name),
        vector=[float(x) for x in vector],
        payload={"hash": name, "path": f"dir/{name}.png", "url": f"http://blobs.test/{name}.png"},
    )


def test_collection_lifecycle(store):
    store.create_collection("images", 4, on_disk=True, quantization=True)

    assert store.collection_exists("images")
    assert "images" in store.list_collections()
    info = store.collection_info("images")
    assert (info.name, info.dim, info.points_count) == ("images", 4, 0)

    store.delete_collection("images")
    assert not store.collection_exists("images")


def test_upsert_and_recommend_return_typed_results(store):
    store.create_collection("images", 3)
    store.upsert(
        "images",
        [make_point("a", [1.0, 0.0, 0.0]), make_point("b", [0.9, 0.1, 0.0]), make_point("c", [0.0, 0.0, 1.0])],
        chunk_size=2,
    )
    assert store.collection_info("images").points_count == 3

    results = store.recommend(
        "images",
        [np.array([1.0, 0.0, 0.0], dtype=np.float32)],
        SearchParams(limit=10, score_threshold=0.5, exact=True),
    )

    assert [result.hash for result in results] == ["a", "b"]
    assert results[0].id == point_id("a")
    assert results[0].path == "dir/a.png"
    assert results[0].url == "http://blobs.test/a.png"
    assert results[0].score == pytest.approx(1.0, abs=1e-4)


def test_recommend_respects_limit(store):
    store.create_collection("images", 2)
    store.upsert("images", [make_point(f"p{i}", [1.0, 0.1 * i]) for i in range(5)])

    results = store.recommend("images", [np.array([1.0, 0.0])], SearchParams(limit=2, score_threshold=0.0))

    assert len(results) == 2


def test_recommend_fails_on_missing_payload_field(client, store):
    store.create_collection("images", 2)
    client.upsert(
        collection_name="images",
        points=[models.PointStruct(id=point_id("raw"), vector=[1.0, 0.0], payload={"hash": "raw", "path": "raw.png"})],
        wait=True,
    )

    with pytest.raises(PayloadError, match="url"):
        store.recommend("images", [np.array([1.0, 0.0])], SearchParams(score_threshold=0.0))


def test_recommend_rejects_too_many_positives(store):
    store.create_collection("images", 2)
    with pytest.raises(ValueError):
        store.recommend("images", [np.ones(2)] * 33, SearchParams())
