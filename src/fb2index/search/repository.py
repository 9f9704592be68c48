"""Repository over the books table used by the scanner and the sink."""

from __future__ import annotations

from pathlib import Path
import sqlite3

from fb2index.ingestion.models import BookRecord
from fb2index.search.schema import apply_runtime_pragmas, ensure_schema


class BookRepository:
    """Thin layer over one SQLite connection.

    Writes are not committed until ``commit`` is called.
    """

    def __init__(self, db_path: str | Path, *, check_same_thread: bool = True) -> None:
        self._db_path = Path(db_path)
        self._connection = sqlite3.connect(str(self._db_path), check_same_thread=check_same_thread)
        self._connection.row_factory = sqlite3.Row
        try:
            apply_runtime_pragmas(self._connection)
            ensure_schema(self._connection)
        except sqlite3.Error:
            self._connection.close()
            raise

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "BookRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def count_books(self, zip_filename: str, filename: str) -> int:
        row = self._connection.execute(
            "SELECT COUNT(*) AS c FROM books WHERE zip_filename = ? AND filename = ?",
            (zip_filename, filename),
        ).fetchone()
        return int(row["c"])

    def save_book(self, record: BookRecord) -> None:
        """Insert a record, replacing the fields of an existing one with the same key."""

        self._connection.execute(
            """
            INSERT INTO books(
                author,
                author_lc,
                title,
                title_lc,
                genre,
                annotation,
                annotation_lc,
                date,
                lang,
                zip_filename,
                filename
            )
            VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(zip_filename, filename) DO UPDATE SET
                author=excluded.author,
                author_lc=excluded.author_lc,
                title=excluded.title,
                title_lc=excluded.title_lc,
                genre=excluded.genre,
                annotation=excluded.annotation,
                annotation_lc=excluded.annotation_lc,
                date=excluded.date,
                lang=excluded.lang,
                indexed_at=CURRENT_TIMESTAMP
            """,
            (
                record.author,
                record.author_lc,
                record.title,
                record.title_lc,
                record.genre,
                record.annotation,
                record.annotation_lc,
                record.date,
                record.lang,
                record.zip_filename,
                record.filename,
            ),
        )

    def commit(self) -> None:
        self._connection.commit()

    def total_books(self) -> int:
        row = self._connection.execute("SELECT COUNT(*) AS c FROM books").fetchone()
        return int(row["c"])

    def get_book(self, zip_filename: str, filename: str) -> BookRecord | None:
        row = self._connection.execute(
            """
            SELECT title, author, genre, annotation, date, lang,
                   author_lc, title_lc, annotation_lc, zip_filename, filename
            FROM books
            WHERE zip_filename = ? AND filename = ?
            """,
            (zip_filename, filename),
        ).fetchone()
        if row is None:
            return None
        return BookRecord(
            title=row["title"],
            author=row["author"],
            genre=row["genre"],
            annotation=row["annotation"],
            date=row["date"],
            lang=row["lang"],
            author_lc=row["author_lc"],
            title_lc=row["title_lc"],
            annotation_lc=row["annotation_lc"],
            zip_filename=row["zip_filename"],
            filename=row["filename"],
        )
