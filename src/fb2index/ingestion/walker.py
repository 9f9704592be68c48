"""Directory traversal that yields candidate archive paths."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from fb2index.config import ARCHIVE_SUFFIX


LOGGER = logging.getLogger(__name__)


def _log_walk_error(error: OSError) -> None:
    LOGGER.error("Error scanning %s: %s", error.filename, error)


def iter_archive_paths(root: str | Path, suffix: str = ARCHIVE_SUFFIX) -> Iterator[Path]:
    """Yield archive files under root in lexical traversal order.

    Unreadable directories are logged and skipped; the walk never aborts.
    """

    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            if name.endswith(suffix):
                yield Path(dirpath) / name
