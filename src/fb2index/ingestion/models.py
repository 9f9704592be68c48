"""Data structures passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING
from zipfile import ZipInfo

if TYPE_CHECKING:
    from fb2index.ingestion.archives import SharedArchive


@dataclass(slots=True)
class AuthorName:
    """Name parts of the first author listed in <title-info>."""

    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    nickname: str = ""


@dataclass(slots=True)
class TitleInfo:
    """Raw <title-info> fields collected by the streaming parser."""

    genre: str = ""
    author: AuthorName = field(default_factory=AuthorName)
    book_title: str = ""
    annotation: list[str] = field(default_factory=list)
    date: str = ""
    lang: str = ""


@dataclass(slots=True)
class DocumentMetadata:
    """Subset of a FictionBook document relevant to indexing."""

    title_info: TitleInfo = field(default_factory=TitleInfo)


@dataclass(frozen=True, slots=True)
class ExtractionTask:
    """One archive entry waiting for metadata extraction."""

    archive: SharedArchive
    entry: ZipInfo

    @property
    def zip_filename(self) -> str:
        return self.archive.name

    @property
    def filename(self) -> str:
        return self.entry.filename

    def open(self) -> IO[bytes]:
        """Open a fresh byte stream over the entry."""

        return self.archive.open(self.entry)

    def release(self) -> None:
        """Drop this task's reference to the shared archive."""

        self.archive.release()


@dataclass(frozen=True, slots=True)
class BookRecord:
    """Normalized record persisted to the books table."""

    title: str
    author: str
    genre: str
    annotation: str
    date: str
    lang: str
    author_lc: str
    title_lc: str
    annotation_lc: str
    zip_filename: str
    filename: str
