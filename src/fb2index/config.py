"""Runtime configuration for the archive indexing pipeline."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping


DEFAULT_QUEUE_SIZE = 100
DEFAULT_REPORT_INTERVAL_SECONDS = 5.0
DEFAULT_COMMIT_EVERY = 500
ARCHIVE_SUFFIX = ".zip"
DOCUMENT_SUFFIX = ".fb2"


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw_value!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_positive_float(*, name: str, raw_value: str, minimum: float = 0.001) -> float:
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw_value!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def default_worker_count() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True, slots=True)
class IndexerSettings:
    """Validated settings shared by every pipeline stage."""

    db_path: Path
    workers: int
    queue_size: int = DEFAULT_QUEUE_SIZE
    report_interval: float = DEFAULT_REPORT_INTERVAL_SECONDS
    commit_every: int = DEFAULT_COMMIT_EVERY
    archive_suffix: str = ARCHIVE_SUFFIX
    document_suffix: str = DOCUMENT_SUFFIX

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "IndexerSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        db_path = source.get("FB2INDEX_DB_PATH", "").strip()
        if not db_path:
            raise ValueError("Missing required environment variable: FB2INDEX_DB_PATH")

        workers = default_worker_count()
        raw_workers = source.get("FB2INDEX_WORKERS", "").strip()
        if raw_workers:
            workers = _parse_positive_int(name="FB2INDEX_WORKERS", raw_value=raw_workers)

        queue_size = DEFAULT_QUEUE_SIZE
        raw_queue_size = source.get("FB2INDEX_QUEUE_SIZE", "").strip()
        if raw_queue_size:
            queue_size = _parse_positive_int(name="FB2INDEX_QUEUE_SIZE", raw_value=raw_queue_size)

        report_interval = DEFAULT_REPORT_INTERVAL_SECONDS
        raw_interval = source.get("FB2INDEX_REPORT_INTERVAL", "").strip()
        if raw_interval:
            report_interval = _parse_positive_float(name="FB2INDEX_REPORT_INTERVAL", raw_value=raw_interval)

        commit_every = DEFAULT_COMMIT_EVERY
        raw_commit_every = source.get("FB2INDEX_COMMIT_EVERY", "").strip()
        if raw_commit_every:
            commit_every = _parse_positive_int(name="FB2INDEX_COMMIT_EVERY", raw_value=raw_commit_every)

        return cls(
            db_path=Path(db_path),
            workers=workers,
            queue_size=queue_size,
            report_interval=report_interval,
            commit_every=commit_every,
        )
