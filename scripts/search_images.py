# Path: scripts/search_images.py
# Purpose: CLI tool to search the index with probe images and download the matches.
# Layer: scripts.
# Details: One recommend query per tag folder; matches are written below the output directory.

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import AppSettings
from core.errors import ConfigurationError
from core.models.domain import SearchParams
from core.search import QueryPipeline
from scripts.common import build_collaborators, configure_logging

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """Execute a probe-set search from the command line."""

    parser = argparse.ArgumentParser(description="Find indexed images similar to a probe image or folder")
    parser.add_argument("input", type=Path, help="Probe image, or a folder of tag sub-folders")
    parser.add_argument("output", type=Path, nargs="?", default=None, help="Where matches are written")
    parser.add_argument("-l", "--limit", type=int, default=100, help="Maximum matches per tag group")
    parser.add_argument("-s", "--score-threshold", type=float, default=0.5, help="Minimum similarity score")
    parser.add_argument("--use-http", action="store_true", help="Download matches by URL instead of from the bucket")
    parser.add_argument("-b", "--batch-size", type=int, default=128, help="Probe images per inference call")
    parser.add_argument("-d", "--device-id", type=int, default=None, help="CUDA device for the model")
    parser.add_argument("-n", "--num-threads", type=int, default=16, help="Intra-op threads for the model")
    parser.add_argument("-e", "--exact", action="store_true", help="Use exact instead of approximate search")
    parser.add_argument("--hnsw-ef", type=int, default=32, help="Search width for approximate search")
    args = parser.parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ConfigurationError as exc:
        configure_logging("INFO")
        logger.error("%s", exc)
        return 1
    configure_logging(settings.log_level)

    if args.device_id is not None:
        settings.embedder.device_id = args.device_id
    settings.embedder.num_threads = args.num_threads

    params = SearchParams(
        limit=args.limit,
        score_threshold=args.score_threshold,
        exact=args.exact,
        hnsw_ef=args.hnsw_ef,
    )
    try:
        collaborators = build_collaborators(settings)
        pipeline = QueryPipeline(
            embedder=collaborators.embedder,
            blob_store=collaborators.blob_store,
            vector_store=collaborators.vector_store,
            collection=settings.vector_store.collection_name,
            settings=settings.pipeline,
            batch_size=args.batch_size,
            show_progress=True,
        )
        report = pipeline.run(args.input, args.output, params=params, use_http=args.use_http)
    except (ConfigurationError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    for group in report.groups:
        print(f"{group.tag}: {group.downloaded}/{group.matches} downloaded to {report.output / group.subdir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
