"""Tests for environment-driven settings."""

import pytest

from config import AppSettings, PipelineSettings, VectorStoreSettings
from core.errors import ConfigurationError

ENV = {
    "AWS_ACCESS_KEY_ID": "key",
    "AWS_SECRET_ACCESS_KEY": "secret",
    "AWS_REGION": "us-east-1",
    "S3_BUCKET_NAME": "images",
    "S3_ENDPOINT": "http://minio:9000",
    "QDRANT_URL": "http://qdrant:6333",
    "COLLECTION_NAME": "tagged",
}


def test_from_env_reads_every_section():
    settings = AppSettings.from_env({**ENV, "DEVICE_ID": "1", "LOG_LEVEL": "DEBUG"})

    assert settings.blob_store.bucket_name == "images"
    assert settings.blob_store.endpoint == "http://minio:9000"
    assert settings.vector_store.url == "http://qdrant:6333"
    assert settings.vector_store.collection_name == "tagged"
    assert settings.embedder.device_id == 1
    assert settings.log_level == "DEBUG"


def test_defaults_apply_when_optional_values_are_absent():
    settings = AppSettings.from_env(dict(ENV))

    assert settings.embedder.device_id == 0
    assert settings.embedder.repo_id == "SmilingWolf/wd-swinv2-tagger-v3"
    assert settings.vector_store.upsert_chunk_size == 32
    assert settings.log_level == "INFO"


def test_missing_variables_are_listed_together():
    environ = {key: value for key, value in ENV.items() if key not in ("AWS_REGION", "QDRANT_URL")}

    with pytest.raises(ConfigurationError) as excinfo:
        AppSettings.from_env(environ)

    assert "AWS_REGION" in str(excinfo.value)
    assert "QDRANT_URL" in str(excinfo.value)


def test_device_id_must_be_an_integer():
    with pytest.raises(ConfigurationError):
        AppSettings.from_env({**ENV, "DEVICE_ID": "gpu0"})


def test_vector_store_settings_only_need_qdrant():
    settings = VectorStoreSettings.from_env({"QDRANT_URL": "http://localhost:6333"})

    assert settings.collection_name == "images"
    with pytest.raises(ConfigurationError):
        VectorStoreSettings.from_env({})


def test_pipeline_defaults_are_positive():
    settings = PipelineSettings()

    assert settings.io_workers >= settings.compute_workers >= 1
    assert settings.network_workers >= 1
    assert settings.reindex_existing is False
