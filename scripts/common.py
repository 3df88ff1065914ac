# Path: scripts/common.py
# Purpose: Shared wiring for the command-line tools.
# Layer: scripts.
# Details: Builds collaborators once from settings and configures logging.

from __future__ import annotations

import logging
from dataclasses import dataclass

from config import AppSettings
from core.blob_store import S3BlobStore
from core.embedders import WdTaggerEmbedder
from core.vector_store import QdrantStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@dataclass
class Collaborators:
    """Handles shared by every worker of a run."""

    embedder: WdTaggerEmbedder
    blob_store: S3BlobStore
    vector_store: QdrantStore


def build_collaborators(settings: AppSettings) -> Collaborators:
    """Load the model and open the blob store and vector index clients."""

    embedder = WdTaggerEmbedder.from_pretrained(
        repo_id=settings.embedder.repo_id,
        filename=settings.embedder.filename,
        device_id=settings.embedder.device_id,
        num_threads=settings.embedder.num_threads,
    )
    blob_store = S3BlobStore.from_settings(settings.blob_store)
    vector_store = QdrantStore.connect(
        settings.vector_store.url,
        timeout=settings.vector_store.timeout,
        api_key=settings.vector_store.api_key,
    )
    return Collaborators(embedder=embedder, blob_store=blob_store, vector_store=vector_store)
