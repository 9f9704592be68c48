"""Single-writer persistence stage with periodic throughput reports."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import sqlite3
import time
from typing import Callable, Iterable, Protocol

from fb2index.config import DEFAULT_COMMIT_EVERY, DEFAULT_REPORT_INTERVAL_SECONDS
from fb2index.ingestion.models import BookRecord


LOGGER = logging.getLogger(__name__)


class BookWriter(Protocol):
    def save_book(self, record: BookRecord) -> None:
        """Persist one record."""

    def commit(self) -> None:
        """Make pending writes durable."""


@dataclass(slots=True)
class SinkStats:
    processed: int = 0
    stored: int = 0
    write_errors: int = 0


class ThroughputReporter:
    """Log a running count about once per interval.

    The report mark advances by whole intervals, so after a stall the next
    reports come in quick succession until the mark catches up.
    """

    def __init__(self, *, interval: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = interval
        self._clock = clock
        self._started = clock()
        self._mark = self._started

    def observe(self, count: int) -> bool:
        now = self._clock()
        if now - self._mark <= self._interval:
            return False
        elapsed = now - self._started
        speed = int(count / elapsed) if elapsed > 0 else count
        LOGGER.info("%d processed, speed: %d files/s", count, speed)
        self._mark += self._interval
        return True


class RecordSink:
    """Drain completed records into the store."""

    def __init__(
        self,
        writer: BookWriter,
        *,
        report_interval: float = DEFAULT_REPORT_INTERVAL_SECONDS,
        commit_every: int = DEFAULT_COMMIT_EVERY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._writer = writer
        self._report_interval = report_interval
        self._commit_every = commit_every
        self._clock = clock
        self.stats = SinkStats()

    def consume(self, records: Iterable[BookRecord]) -> SinkStats:
        reporter = ThroughputReporter(interval=self._report_interval, clock=self._clock)
        pending = 0
        for record in records:
            self.stats.processed += 1
            try:
                self._writer.save_book(record)
            except sqlite3.Error as exc:
                self.stats.write_errors += 1
                LOGGER.error("Couldn't store %s/%s: %s", record.zip_filename, record.filename, exc)
            else:
                pending += 1

            if pending >= self._commit_every:
                self._commit(pending)
                pending = 0
            reporter.observe(self.stats.processed)

        self._commit(pending)
        return self.stats

    def _commit(self, pending: int) -> None:
        if pending == 0:
            return
        try:
            self._writer.commit()
        except sqlite3.Error as exc:
            self.stats.write_errors += pending
            LOGGER.error("Couldn't commit %d records: %s", pending, exc)
            return
        self.stats.stored += pending
