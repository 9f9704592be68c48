"""Field cleanup applied to parsed metadata before persistence."""

from __future__ import annotations

from typing import Iterable

from fb2index.ingestion.models import AuthorName, BookRecord, DocumentMetadata


def clean_field(text: str) -> str:
    """Trim surrounding whitespace from a single metadata value."""

    return text.strip()


def join_author(author: AuthorName) -> str:
    """Build the display name from first, middle and last names."""

    parts = (clean_field(part) for part in (author.first_name, author.middle_name, author.last_name))
    return " ".join(part for part in parts if part)


def join_annotation(paragraphs: Iterable[str]) -> str:
    """Join trimmed non-empty annotation blocks with single spaces."""

    cleaned = (clean_field(paragraph) for paragraph in paragraphs)
    return " ".join(paragraph for paragraph in cleaned if paragraph)


def build_record(metadata: DocumentMetadata, *, zip_filename: str, filename: str) -> BookRecord:
    """Turn parsed metadata into a searchable record."""

    info = metadata.title_info
    title = clean_field(info.book_title)
    author = join_author(info.author)
    annotation = join_annotation(info.annotation)
    return BookRecord(
        title=title,
        author=author,
        genre=clean_field(info.genre),
        annotation=annotation,
        date=clean_field(info.date),
        lang=clean_field(info.lang),
        author_lc=author.lower(),
        title_lc=title.lower(),
        annotation_lc=annotation.lower(),
        zip_filename=zip_filename,
        filename=filename,
    )
