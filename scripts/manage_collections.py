# Path: scripts/manage_collections.py
# Purpose: CLI tool to inspect and maintain vector index collections.
# Layer: scripts.
# Details: list / info / create / delete sub-commands over the Qdrant store.

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from config import VectorStoreSettings
from core.errors import ConfigurationError
from core.vector_store import QdrantStore, VectorStore, ensure_collection
from scripts.common import configure_logging

logger = logging.getLogger(__name__)


def run_command(store: VectorStore, args: argparse.Namespace, default_collection: str) -> int:
    """Execute one sub-command against ``store`` and print its result."""

    name = args.name or default_collection
    if args.command == "list":
        for collection in store.list_collections():
            print(collection)
    elif args.command == "info":
        if not store.collection_exists(name):
            print(f"Collection {name} does not exist")
            return 1
        info = store.collection_info(name)
        print(f"name={info.name} dim={info.dim} points={info.points_count}")
    elif args.command == "create":
        created = ensure_collection(store, name, args.dim, on_disk=not args.in_memory, quantization=not args.no_quantization)
        print(f"Created {name}" if created else f"{name} already exists")
    elif args.command == "delete":
        store.delete_collection(name)
        print(f"Deleted {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage vector index collections")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List collections").set_defaults(name=None)
    for command in ("info", "delete"):
        sub = commands.add_parser(command, help=f"{command.capitalize()} a collection")
        sub.add_argument("name", nargs="?", default=None, help="Collection name (defaults to COLLECTION_NAME)")

    create = commands.add_parser("create", help="Create a collection if it does not exist")
    create.add_argument("name", nargs="?", default=None, help="Collection name (defaults to COLLECTION_NAME)")
    create.add_argument("--dim", type=int, required=True, help="Vector dimensionality")
    create.add_argument("--in-memory", action="store_true", help="Keep vectors in RAM instead of on disk")
    create.add_argument("--no-quantization", action="store_true", help="Disable int8 scalar quantization")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("INFO")
    try:
        settings = VectorStoreSettings.from_env()
        store = QdrantStore.connect(settings.url, timeout=settings.timeout, api_key=settings.api_key)
        return run_command(store, args, settings.collection_name)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
