"""Threaded archive indexing pipeline: walk, scan, extract, store."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import threading
import time
from typing import Any, Callable, Iterable, TypeVar

from fb2index.config import IndexerSettings
from fb2index.ingestion.archives import ArchiveScanner
from fb2index.ingestion.channel import Channel
from fb2index.ingestion.extractor import MetadataExtractor
from fb2index.ingestion.fb2_parser import DEFAULT_TAG_TABLE, TagTable
from fb2index.ingestion.models import BookRecord, ExtractionTask
from fb2index.ingestion.walker import iter_archive_paths
from fb2index.search.repository import BookRepository
from fb2index.search.sink import RecordSink


LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class PipelineError(Exception):
    """Startup failure that prevents the pipeline from running."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.message} (path={self.path})"


@dataclass(slots=True)
class IndexRunStats:
    archives_scanned: int = 0
    archive_errors: int = 0
    skipped_existing: int = 0
    queued: int = 0
    extracted: int = 0
    extraction_failures: int = 0
    stored: int = 0
    write_errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "archives_scanned": self.archives_scanned,
            "archive_errors": self.archive_errors,
            "skipped_existing": self.skipped_existing,
            "queued": self.queued,
            "extracted": self.extracted,
            "extraction_failures": self.extraction_failures,
            "stored": self.stored,
            "write_errors": self.write_errors,
            "duration_ms": self.duration_ms,
        }


def _pump(items: Iterable[T], channel: Channel[T]) -> None:
    try:
        for item in items:
            channel.put(item)
    finally:
        channel.close()


def _start(name: str, target: Callable[..., Any], *args: Any) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    thread.start()
    return thread


class ArchiveIndexer:
    """Index every FB2 document found in zip archives under a root directory.

    The scanner checks for existing records on its own connection, unsynchronized
    with the sink's writes. Each archive is scanned once per run, so a key can
    only be written after its own check.
    """

    def __init__(
        self,
        settings: IndexerSettings,
        *,
        table: TagTable = DEFAULT_TAG_TABLE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._table = table
        self._clock = clock

    def index_archives(self, root: str | Path) -> IndexRunStats:
        root_path = Path(root)
        if not root_path.is_dir():
            raise PipelineError(root_path, "Root path does not exist or is not a directory")

        started = time.perf_counter()
        settings = self._settings
        with BookRepository(settings.db_path, check_same_thread=False) as writer, BookRepository(
            settings.db_path, check_same_thread=False
        ) as lookup:
            paths: Channel[Path] = Channel(settings.queue_size)
            tasks: Channel[ExtractionTask] = Channel(settings.queue_size)
            records: Channel[BookRecord] = Channel(settings.queue_size)

            scanner = ArchiveScanner(lookup, document_suffix=settings.document_suffix)
            extractors = [MetadataExtractor(table=self._table) for _ in range(settings.workers)]
            sink = RecordSink(
                writer,
                report_interval=settings.report_interval,
                commit_every=settings.commit_every,
                clock=self._clock,
            )

            stages = [
                _start("walker", _pump, iter_archive_paths(root_path, settings.archive_suffix), paths),
                _start("scanner", _pump, scanner.scan(paths), tasks),
            ]
            workers = [
                _start(f"extractor-{index}", extractor.run, tasks, records.put)
                for index, extractor in enumerate(extractors)
            ]
            sink_thread = _start("sink", sink.consume, records)

            for worker in workers:
                worker.join()
            records.close()
            for thread in (*stages, sink_thread):
                thread.join()

        stats = IndexRunStats(
            archives_scanned=scanner.stats.archives,
            archive_errors=scanner.stats.archive_errors,
            skipped_existing=scanner.stats.skipped_existing,
            queued=scanner.stats.queued,
            extracted=sum(extractor.stats.extracted for extractor in extractors),
            extraction_failures=sum(extractor.stats.failed for extractor in extractors),
            stored=sink.stats.stored,
            write_errors=sink.stats.write_errors,
        )
        stats.duration_ms = int((time.perf_counter() - started) * 1000)
        return stats
