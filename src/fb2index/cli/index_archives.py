"""CLI entrypoint for indexing FB2 metadata from zip archives."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import sqlite3

from dotenv import load_dotenv

from fb2index.config import IndexerSettings
from fb2index.search.indexer import ArchiveIndexer, PipelineError


load_dotenv()

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index FB2 book metadata found in zip archives into SQLite")
    parser.add_argument("root", help="Directory scanned recursively for .zip archives")
    parser.add_argument(
        "-d",
        "--database",
        default=None,
        help="SQLite database path (defaults to $FB2INDEX_DB_PATH)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Number of extraction threads")
    parser.add_argument("--verbose", action="store_true", help="Log per-entry decisions")
    return parser.parse_args(argv)


def _load_settings(args: argparse.Namespace) -> IndexerSettings:
    environ = dict(os.environ)
    if args.database:
        environ["FB2INDEX_DB_PATH"] = args.database
    if args.workers is not None:
        environ["FB2INDEX_WORKERS"] = str(args.workers)
    return IndexerSettings.from_env(environ)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        settings = _load_settings(args)
    except ValueError as error:
        LOGGER.error("Configuration error: %s", error)
        return 2

    root = Path(args.root)
    indexer = ArchiveIndexer(settings)
    try:
        stats = indexer.index_archives(root)
    except PipelineError as error:
        LOGGER.error("%s", error)
        return 2
    except sqlite3.Error as error:
        LOGGER.error("Cannot open database %s: %s", settings.db_path, error)
        return 1

    LOGGER.info("Indexing finished: %s", json.dumps(stats.to_dict(), ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
