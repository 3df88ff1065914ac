# Path: scripts/index_images.py
# Purpose: CLI tool to ingest an image folder into the blob store and the vector index.
# Layer: scripts.
# Details: Wires settings, collaborators, and the ingest pipeline; exits non-zero on startup failures.

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import AppSettings
from core.errors import ConfigurationError
from core.indexing import IngestPipeline
from scripts.common import build_collaborators, configure_logging

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Run ingestion over a folder of images."""

    parser = argparse.ArgumentParser(description="Ingest images into the blob store and vector index")
    parser.add_argument("root", type=Path, help="Folder containing images to ingest")
    parser.add_argument("-b", "--batch-size", type=int, default=None, help="Number of images per inference call")
    parser.add_argument("-d", "--device-id", type=int, default=None, help="CUDA device for the model")
    parser.add_argument("-n", "--num-threads", type=int, default=None, help="Intra-op threads for the model")
    parser.add_argument(
        "--reindex-existing",
        action="store_true",
        help="Re-embed and re-index images whose bytes are already stored",
    )
    args = parser.parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ConfigurationError as exc:
        configure_logging("INFO")
        logger.error("%s", exc)
        return 1
    configure_logging(settings.log_level)

    if args.batch_size is not None:
        settings.embedder.batch_size = args.batch_size
    if args.device_id is not None:
        settings.embedder.device_id = args.device_id
    if args.num_threads is not None:
        settings.embedder.num_threads = args.num_threads
    settings.pipeline.reindex_existing = args.reindex_existing

    try:
        collaborators = build_collaborators(settings)
        pipeline = IngestPipeline(
            embedder=collaborators.embedder,
            blob_store=collaborators.blob_store,
            vector_store=collaborators.vector_store,
            collection=settings.vector_store.collection_name,
            settings=settings.pipeline,
            batch_size=settings.embedder.batch_size,
            upsert_chunk_size=settings.vector_store.upsert_chunk_size,
            on_disk=settings.vector_store.on_disk,
            quantization=settings.vector_store.quantization,
            show_progress=True,
        )
        report = pipeline.run(args.root)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1

    print(
        f"Indexed {report.indexed} of {report.discovered} images into {settings.vector_store.collection_name} "
        f"({report.skipped} already stored, {report.uploaded} uploaded, {len(report.failures)} failed)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
