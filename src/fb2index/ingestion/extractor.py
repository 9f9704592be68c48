"""Metadata extraction workers with a single encoding fallback."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import lzma
from typing import IO, Callable, Iterable, Sequence
import zipfile
import zlib

from lxml import etree

from fb2index.ingestion.decoding import DEFAULT_STRATEGIES, DecodeStrategy
from fb2index.ingestion.fb2_parser import DEFAULT_TAG_TABLE, TagTable, parse_title_info
from fb2index.ingestion.models import BookRecord, DocumentMetadata, ExtractionTask
from fb2index.ingestion.normalization import build_record


LOGGER = logging.getLogger(__name__)

OPEN_ERRORS = (OSError, zipfile.BadZipFile, RuntimeError, ValueError)
PARSE_ERRORS = (
    etree.LxmlError,
    UnicodeError,
    LookupError,
    OSError,
    zipfile.BadZipFile,
    zlib.error,
    lzma.LZMAError,
    EOFError,
    ValueError,
)


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Tagged result of the parse attempts for one document."""

    metadata: DocumentMetadata | None
    errors: tuple[str, ...] = ()
    opened: bool = True

    @property
    def ok(self) -> bool:
        return self.metadata is not None


def parse_with_fallback(
    open_stream: Callable[[], IO[bytes]],
    *,
    table: TagTable = DEFAULT_TAG_TABLE,
    strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
) -> ParseOutcome:
    """Try each decode strategy on a fresh stream until one parses.

    A failure to open the entry ends the attempts immediately since every
    strategy would hit the same error.
    """

    errors: list[str] = []
    for strategy in strategies:
        try:
            stream = open_stream()
        except OPEN_ERRORS as exc:
            errors.append(str(exc))
            return ParseOutcome(metadata=None, errors=tuple(errors), opened=False)

        try:
            with stream:
                metadata = parse_title_info(strategy(stream), table)
        except PARSE_ERRORS as exc:
            errors.append(str(exc) or type(exc).__name__)
            continue
        return ParseOutcome(metadata=metadata)

    return ParseOutcome(metadata=None, errors=tuple(errors))


@dataclass(slots=True)
class ExtractStats:
    extracted: int = 0
    failed: int = 0


class MetadataExtractor:
    """One extraction worker; run one instance per thread."""

    def __init__(
        self,
        *,
        table: TagTable = DEFAULT_TAG_TABLE,
        strategies: Sequence[DecodeStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self._table = table
        self._strategies = tuple(strategies)
        self.stats = ExtractStats()

    def extract(self, task: ExtractionTask) -> BookRecord | None:
        """Extract one task, always releasing its archive reference."""

        try:
            outcome = parse_with_fallback(task.open, table=self._table, strategies=self._strategies)
        finally:
            task.release()

        if not outcome.ok:
            self.stats.failed += 1
            self._log_failure(task, outcome)
            return None

        assert outcome.metadata is not None
        self.stats.extracted += 1
        return build_record(outcome.metadata, zip_filename=task.zip_filename, filename=task.filename)

    def run(self, tasks: Iterable[ExtractionTask], emit: Callable[[BookRecord], None]) -> None:
        """Consume tasks until the channel closes.

        A task failing in an unexpected way is logged and counted, and the
        worker moves on to the next one.
        """

        for task in tasks:
            try:
                record = self.extract(task)
            except Exception:
                self.stats.failed += 1
                LOGGER.exception("Extraction failed for %s/%s", task.zip_filename, task.filename)
                continue
            if record is not None:
                emit(record)

    def _log_failure(self, task: ExtractionTask, outcome: ParseOutcome) -> None:
        if not outcome.opened:
            LOGGER.error("Couldn't open %s/%s: %s", task.zip_filename, task.filename, outcome.errors[-1])
            return
        latest = outcome.errors[-1] if outcome.errors else "unknown error"
        previous = "; ".join(outcome.errors[:-1]) or "none"
        LOGGER.error("Couldn't decode %s/%s: %s (previously: %s)", task.zip_filename, task.filename, latest, previous)
