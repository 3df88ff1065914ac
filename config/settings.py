# Path: config/settings.py
# Purpose: Provide typed application configuration models.
# Layer: config.
# Details: Centralizes settings for the embedder, blob store, vector index, and pipeline concurrency.

from __future__ import annotations

import os
from typing import ClassVar, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.errors import ConfigurationError


def _cpu_count() -> int:
    return os.cpu_count() or 1


class EmbedderSettings(BaseModel):
    """Settings describing which embedding model to load and how to run it."""

    repo_id: str = Field(default="SmilingWolf/wd-swinv2-tagger-v3", description="Hugging Face repository of the ONNX model.")
    filename: str = Field(default="model.onnx", description="Model file inside the repository.")
    device_id: int = Field(default=0, description="CUDA device used when the CUDA provider is available.")
    num_threads: int = Field(default=16, description="Intra-op thread count for the inference session.")
    batch_size: int = Field(default=16, ge=1, description="Number of images submitted per inference call.")


class BlobStoreSettings(BaseModel):
    """Credentials and location of the S3-compatible object store."""

    access_key_id: str
    secret_access_key: str
    region: str
    bucket_name: str
    endpoint: str


class VectorStoreSettings(BaseModel):
    """Settings controlling the Qdrant connection and collection layout."""

    url: str = Field(default="http://localhost:6333", description="Qdrant endpoint.")
    api_key: Optional[str] = Field(default=None, description="Optional Qdrant API key.")
    collection_name: str = Field(default="images", description="Collection holding image vectors.")
    timeout: int = Field(default=60, description="Per-call timeout in seconds.")
    on_disk: bool = Field(default=True, description="Store original vectors on disk.")
    quantization: bool = Field(default=True, description="Enable int8 scalar quantization.")
    upsert_chunk_size: int = Field(default=32, ge=1, description="Points sent per upsert request.")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "VectorStoreSettings":
        """Read only the Qdrant variables, for tools that never touch the blob store."""

        if environ is None:
            load_dotenv()
            environ = os.environ
        if not environ.get("QDRANT_URL"):
            raise ConfigurationError("Missing required environment variable: QDRANT_URL")
        return cls(
            url=environ["QDRANT_URL"],
            api_key=environ.get("QDRANT_API_KEY") or None,
            collection_name=environ.get("COLLECTION_NAME") or "images",
        )


class PipelineSettings(BaseModel):
    """Worker pool sizes and batching for the ingest and query pipelines."""

    io_workers: int = Field(default_factory=lambda: _cpu_count() * 2, ge=1, description="Hash and decode workers.")
    compute_workers: int = Field(default_factory=_cpu_count, ge=1, description="Embedding workers.")
    network_workers: int = Field(default_factory=_cpu_count, ge=1, description="Upload and index workers.")
    download_workers: int = Field(default=4, ge=1, description="Concurrent downloads per query group.")
    reindex_existing: bool = Field(
        default=False,
        description="Re-embed and re-upsert images whose blob already exists instead of skipping them.",
    )


class AppSettings(BaseModel):
    """Top-level application settings shared across services and interfaces."""

    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    blob_store: BlobStoreSettings
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    log_level: str = Field(default="INFO", description="Verbosity level for application logs.")

    REQUIRED_ENV: ClassVar[Tuple[str, ...]] = (
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_REGION",
        "S3_BUCKET_NAME",
        "S3_ENDPOINT",
        "QDRANT_URL",
        "COLLECTION_NAME",
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "AppSettings":
        """Instantiate settings from environment variables, loading a ``.env`` file first.

        Raises :class:`ConfigurationError` listing every missing variable.
        """

        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        missing: List[str] = [name for name in cls.REQUIRED_ENV if not environ.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        embedder: Dict[str, object] = {}
        if environ.get("DEVICE_ID"):
            try:
                embedder["device_id"] = int(environ["DEVICE_ID"])
            except ValueError as exc:
                raise ConfigurationError(f"DEVICE_ID must be an integer, got {environ['DEVICE_ID']!r}") from exc

        return cls(
            embedder=EmbedderSettings(**embedder),
            blob_store=BlobStoreSettings(
                access_key_id=environ["AWS_ACCESS_KEY_ID"],
                secret_access_key=environ["AWS_SECRET_ACCESS_KEY"],
                region=environ["AWS_REGION"],
                bucket_name=environ["S3_BUCKET_NAME"],
                endpoint=environ["S3_ENDPOINT"],
            ),
            vector_store=VectorStoreSettings.from_env(environ),
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )


__all__ = ["AppSettings", "BlobStoreSettings", "EmbedderSettings", "PipelineSettings", "VectorStoreSettings"]
