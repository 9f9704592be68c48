"""Archive scanning: entry discovery and already-indexed filtering."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath
import threading
from typing import IO, Iterable, Iterator, Protocol
from zipfile import BadZipFile, ZipFile, ZipInfo

from fb2index.config import DOCUMENT_SUFFIX
from fb2index.ingestion.models import ExtractionTask


LOGGER = logging.getLogger(__name__)


class BookLookup(Protocol):
    def count_books(self, zip_filename: str, filename: str) -> int:
        """Return how many stored records carry this dedup key."""


class SharedArchive:
    """An open zip archive shared by every task emitted from it.

    The archive closes when the scanner and all outstanding tasks have
    released it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.name = self.path.name
        self._zip = ZipFile(self.path)
        self._refs = 1
        self._lock = threading.Lock()

    def entries(self) -> list[ZipInfo]:
        return self._zip.infolist()

    def open(self, entry: ZipInfo) -> IO[bytes]:
        return self._zip.open(entry)

    def retain(self) -> None:
        with self._lock:
            self._refs += 1

    def release(self) -> None:
        with self._lock:
            self._refs -= 1
            remaining = self._refs
        if remaining == 0:
            self._zip.close()

    @property
    def closed(self) -> bool:
        return self._zip.fp is None


@dataclass(slots=True)
class ScanStats:
    archives: int = 0
    archive_errors: int = 0
    skipped_existing: int = 0
    queued: int = 0


class ArchiveScanner:
    """Turn archive paths into extraction tasks for unseen documents."""

    def __init__(self, lookup: BookLookup, *, document_suffix: str = DOCUMENT_SUFFIX) -> None:
        self._lookup = lookup
        self._document_suffix = document_suffix
        self.stats = ScanStats()

    def scan(self, archive_paths: Iterable[Path]) -> Iterator[ExtractionTask]:
        for path in archive_paths:
            try:
                archive = SharedArchive(path)
            except (OSError, BadZipFile) as exc:
                self.stats.archive_errors += 1
                LOGGER.error("Cannot open archive %s: %s", path, exc)
                continue

            self.stats.archives += 1
            LOGGER.info("Processing %s", path)
            try:
                yield from self._scan_entries(archive)
            finally:
                archive.release()

    def _scan_entries(self, archive: SharedArchive) -> Iterator[ExtractionTask]:
        for entry in archive.entries():
            if entry.is_dir():
                continue
            if PurePosixPath(entry.filename).suffix != self._document_suffix:
                continue
            if self._lookup.count_books(archive.name, entry.filename) > 0:
                self.stats.skipped_existing += 1
                LOGGER.debug("Already indexed: %s/%s", archive.name, entry.filename)
                continue

            archive.retain()
            self.stats.queued += 1
            yield ExtractionTask(archive=archive, entry=entry)
