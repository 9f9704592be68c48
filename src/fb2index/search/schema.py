"""SQLite schema and pragmas for the book metadata store."""

from __future__ import annotations

import sqlite3


PRAGMA_BUSY_TIMEOUT_MS = 5000


def apply_runtime_pragmas(connection: sqlite3.Connection) -> None:
    """Allow the scanner to read while the sink writes."""

    connection.execute("PRAGMA journal_mode=WAL;")
    connection.execute(f"PRAGMA busy_timeout={PRAGMA_BUSY_TIMEOUT_MS};")
    connection.execute("PRAGMA synchronous=NORMAL;")


def ensure_schema(connection: sqlite3.Connection) -> None:
    """Create the books table and its lookup indexes if missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS books (
            id INTEGER PRIMARY KEY,
            author TEXT NOT NULL DEFAULT '',
            author_lc TEXT NOT NULL DEFAULT '',
            title TEXT NOT NULL DEFAULT '',
            title_lc TEXT NOT NULL DEFAULT '',
            genre TEXT NOT NULL DEFAULT '',
            annotation TEXT NOT NULL DEFAULT '',
            annotation_lc TEXT NOT NULL DEFAULT '',
            date TEXT NOT NULL DEFAULT '',
            lang TEXT NOT NULL DEFAULT '',
            zip_filename TEXT NOT NULL,
            filename TEXT NOT NULL,
            indexed_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_books_zipfn ON books(zip_filename, filename);
        CREATE INDEX IF NOT EXISTS idx_books_fn ON books(filename);
        CREATE INDEX IF NOT EXISTS idx_books_author_lc ON books(author_lc);
        CREATE INDEX IF NOT EXISTS idx_books_title_lc ON books(title_lc);
        CREATE INDEX IF NOT EXISTS idx_books_annotation_lc ON books(annotation_lc);
        CREATE INDEX IF NOT EXISTS idx_books_genre ON books(genre);
        CREATE INDEX IF NOT EXISTS idx_books_date ON books(date);
        """
    )
