"""Tests for the ingest pipeline against in-memory collaborators."""

import shutil

import pytest
from PIL import Image

from config.settings import PipelineSettings
from core.blob_store import InMemoryBlobStore
from core.errors import ConfigurationError, DimensionMismatchError
from core.hashing import hash_file, point_id
from core.indexing import IngestPipeline
from core.models import SearchParams
from core.vector_store import InMemoryVectorStore

from conftest import COLLECTION, RED, CountingEmbedder


def all_points(vector_store, embedder):
    """Every indexed point, fetched through an unfiltered recommend query."""

    probe = embedder.predict(Image.new("RGB", (16, 16), RED))
    return vector_store.recommend(COLLECTION, [probe], SearchParams(limit=1000, score_threshold=-1.0))


def test_ingest_stores_blobs_and_points(image_tree, ingest_pipeline, blob_store, vector_store, embedder):
    report = ingest_pipeline.run(image_tree)

    assert report.discovered == 3
    assert report.skipped == 0
    assert report.embedded == 3
    assert report.uploaded == 3
    assert report.indexed == 3
    assert report.failures == []

    originals = {
        "red.png": image_tree / "red.png",
        "nested/green.png": image_tree / "nested" / "green.png",
        "nested/deeper/blue.png": image_tree / "nested" / "deeper" / "blue.png",
    }
    expected_keys = sorted(f"{hash_file(path)}.png" for path in originals.values())
    assert blob_store.list() == expected_keys

    points = {point.path: point for point in all_points(vector_store, embedder)}
    assert set(points) == set(originals)
    for relative, path in originals.items():
        digest = hash_file(path)
        assert points[relative].id == point_id(digest)
        assert points[relative].hash == digest
        assert points[relative].url == f"http://blobs.test/bucket/{digest}.png"
        assert blob_store.get(f"{digest}.png") == path.read_bytes()


def test_batches_respect_batch_size(image_tree, ingest_pipeline, embedder):
    ingest_pipeline.run(image_tree)

    assert sum(embedder.calls) == 3
    assert all(size <= 2 for size in embedder.calls)


def test_second_run_skips_everything(image_tree, ingest_pipeline, embedder, vector_store):
    ingest_pipeline.run(image_tree)
    calls_before = list(embedder.calls)
    upserts_before = list(vector_store.upsert_calls)

    report = ingest_pipeline.run(image_tree)

    assert report.skipped == 3
    assert report.embedded == 0
    assert report.uploaded == 0
    assert report.indexed == 0
    assert embedder.calls == calls_before
    assert vector_store.upsert_calls == upserts_before


def test_existing_blob_short_circuits_embedding(image_tree, ingest_pipeline, blob_store, vector_store, embedder):
    red_key = f"{hash_file(image_tree / 'red.png')}.png"
    blob_store.put(red_key, b"already there")

    report = ingest_pipeline.run(image_tree)

    assert report.skipped == 1
    assert report.embedded == 2
    assert embedder.images_embedded == 2
    assert blob_store.get(red_key) == b"already there"
    assert vector_store.collection_info(COLLECTION).points_count == 2


def test_duplicate_content_is_ingested_once(image_tree, ingest_pipeline, blob_store, vector_store):
    shutil.copy(image_tree / "red.png", image_tree / "nested" / "red_again.png")

    report = ingest_pipeline.run(image_tree)

    assert report.discovered == 4
    assert report.skipped == 1
    assert report.embedded == 3
    assert len(blob_store.list()) == 3
    assert vector_store.collection_info(COLLECTION).points_count == 3


def test_reindex_existing_re_embeds_without_uploading(image_tree, ingest_pipeline, embedder, blob_store, vector_store):
    ingest_pipeline.run(image_tree)
    pipeline = IngestPipeline(
        embedder=embedder,
        blob_store=blob_store,
        vector_store=vector_store,
        collection=COLLECTION,
        settings=PipelineSettings(io_workers=2, compute_workers=1, network_workers=1, reindex_existing=True),
    )

    report = pipeline.run(image_tree)

    assert report.skipped == 0
    assert report.embedded == 3
    assert report.indexed == 3
    assert report.uploaded == 0
    assert embedder.images_embedded == 6


def test_unreadable_image_is_reported_and_others_continue(image_tree, ingest_pipeline):
    (image_tree / "broken.png").write_bytes(b"definitely not a png")

    report = ingest_pipeline.run(image_tree)

    assert report.discovered == 4
    assert report.indexed == 3
    assert len(report.failures) == 1
    failure = report.failures[0]
    assert failure.stage == "hash"
    assert failure.label.endswith("broken.png")


class FlakyBlobStore(InMemoryBlobStore):
    """Blob store whose uploads fail for selected keys until ``failing`` is cleared."""

    def __init__(self, failing):
        super().__init__(base_url="http://blobs.test/bucket")
        self.failing = set(failing)

    def put(self, key, data):
        if key in self.failing:
            raise ConnectionError(f"upload of {key} refused")
        super().put(key, data)


def test_failed_upload_is_repaired_by_next_run(image_tree, embedder, vector_store, pipeline_settings):
    red_key = f"{hash_file(image_tree / 'red.png')}.png"
    blob_store = FlakyBlobStore(failing=[red_key])
    pipeline = IngestPipeline(embedder, blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2)

    first = pipeline.run(image_tree)

    assert first.indexed == 3
    assert first.uploaded == 2
    assert [failure.stage for failure in first.failures] == ["upload"]
    assert not blob_store.exists(red_key)

    blob_store.failing.clear()
    second = pipeline.run(image_tree)

    assert second.skipped == 2
    assert second.uploaded == 1
    assert blob_store.exists(red_key)
    assert vector_store.collection_info(COLLECTION).points_count == 3


class BrokenEmbedder(CountingEmbedder):
    def predict_batch(self, images):
        raise RuntimeError("inference crashed")


def test_embedding_failure_fails_the_whole_batch(image_tree, blob_store, vector_store, pipeline_settings):
    pipeline = IngestPipeline(BrokenEmbedder(), blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2)

    report = pipeline.run(image_tree)

    assert report.indexed == 0
    assert report.uploaded == 0
    assert len(report.failures) == 3
    assert {failure.stage for failure in report.failures} == {"embed"}
    assert blob_store.list() == []
    assert vector_store.collection_info(COLLECTION).points_count == 0


def test_dimension_mismatch_aborts_before_embedding(image_tree, ingest_pipeline, vector_store, embedder):
    vector_store.create_collection(COLLECTION, embedder.output_size + 1)

    with pytest.raises(DimensionMismatchError):
        ingest_pipeline.run(image_tree)
    assert embedder.calls == []


def test_missing_root_is_a_configuration_error(tmp_path, ingest_pipeline):
    with pytest.raises(ConfigurationError):
        ingest_pipeline.run(tmp_path / "nope")


def test_points_are_upserted_in_chunks(image_tree, embedder, blob_store, vector_store, pipeline_settings):
    pipeline = IngestPipeline(
        embedder, blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2, upsert_chunk_size=1
    )

    pipeline.run(image_tree)

    assert vector_store.upsert_calls == [1, 1, 1]


def test_bootstrap_creates_collection_with_embedder_size(ingest_pipeline, vector_store, embedder):
    assert ingest_pipeline.bootstrap() is True
    assert vector_store.collection_info(COLLECTION).dim == embedder.output_size
    assert ingest_pipeline.bootstrap() is False


def test_empty_directory_produces_empty_report(tmp_path, ingest_pipeline, vector_store):
    (tmp_path / "empty").mkdir()

    report = ingest_pipeline.run(tmp_path / "empty")

    assert report.to_dict() == {
        "discovered": 0,
        "skipped": 0,
        "embedded": 0,
        "uploaded": 0,
        "indexed": 0,
        "failures": [],
    }
    assert vector_store.collection_exists(COLLECTION)


def test_copy_under_another_extension_gets_its_own_blob(image_tree, ingest_pipeline, embedder, blob_store, vector_store):
    shutil.copy(image_tree / "red.png", image_tree / "red_copy.jpg")
    digest = hash_file(image_tree / "red.png")

    first = ingest_pipeline.run(image_tree)

    assert first.discovered == 4
    assert first.embedded == 3
    assert first.uploaded == 4
    assert first.failures == []
    assert blob_store.exists(f"{digest}.png")
    assert blob_store.exists(f"{digest}.jpg")
    assert vector_store.collection_info(COLLECTION).points_count == 3

    calls_before = list(embedder.calls)
    upserts_before = list(vector_store.upsert_calls)
    second = ingest_pipeline.run(image_tree)

    assert second.skipped == 4
    assert second.embedded == 0
    assert second.uploaded == 0
    assert embedder.calls == calls_before
    assert vector_store.upsert_calls == upserts_before


def test_copies_of_unindexed_content_are_reported(image_tree, blob_store, vector_store, pipeline_settings):
    shutil.copy(image_tree / "red.png", image_tree / "nested" / "red_again.png")
    pipeline = IngestPipeline(BrokenEmbedder(), blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2)

    report = pipeline.run(image_tree)

    assert report.skipped == 0
    assert len(report.failures) == 4
    assert sorted(failure.stage for failure in report.failures) == ["duplicate", "embed", "embed", "embed"]


class TimeoutVectorStore(InMemoryVectorStore):
    """Vector store whose upserts time out for any chunk holding one of ``failing_ids``."""

    def __init__(self, failing_ids):
        super().__init__()
        self.failing_ids = set(failing_ids)

    def upsert(self, name, points, chunk_size=32):
        if any(point.id in self.failing_ids for point in points):
            raise TimeoutError("upsert timed out after 60s")
        super().upsert(name, points, chunk_size=chunk_size)


def test_failed_upsert_fails_its_batch_only(image_tree, embedder, blob_store, pipeline_settings):
    red_digest = hash_file(image_tree / "red.png")
    vector_store = TimeoutVectorStore(failing_ids=[point_id(red_digest)])
    pipeline = IngestPipeline(embedder, blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2)

    report = pipeline.run(image_tree)

    index_failures = [failure for failure in report.failures if failure.stage == "index"]
    assert report.embedded == 3
    assert 1 <= len(index_failures) <= 2
    assert all("TimeoutError" in failure.error for failure in index_failures)
    assert any(failure.label.endswith("red.png") for failure in index_failures)
    assert report.indexed == 3 - len(index_failures)
    assert report.uploaded == report.indexed
    assert len(report.failures) == len(index_failures)
    assert not blob_store.exists(f"{red_digest}.png")
    assert len(blob_store.list()) == report.indexed
    assert vector_store.collection_info(COLLECTION).points_count == report.indexed


class UnreachableBlobStore(InMemoryBlobStore):
    """Blob store whose existence check fails for selected keys."""

    def __init__(self, failing):
        super().__init__(base_url="http://blobs.test/bucket")
        self.failing = set(failing)

    def exists(self, key):
        if key in self.failing:
            raise ConnectionError(f"HEAD {key} failed")
        return super().exists(key)


def test_existence_check_failure_is_a_hash_failure(image_tree, embedder, vector_store, pipeline_settings):
    red_key = f"{hash_file(image_tree / 'red.png')}.png"
    blob_store = UnreachableBlobStore(failing=[red_key])
    pipeline = IngestPipeline(embedder, blob_store, vector_store, COLLECTION, settings=pipeline_settings, batch_size=2)

    report = pipeline.run(image_tree)

    assert [failure.stage for failure in report.failures] == ["hash"]
    assert report.failures[0].label.endswith("red.png")
    assert "ConnectionError" in report.failures[0].error
    assert report.indexed == 2
    assert report.embedded == 2
    assert embedder.images_embedded == 2
