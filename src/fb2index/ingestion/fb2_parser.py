"""Streaming <title-info> extraction from FictionBook documents.

lxml's recovering XML push parser drives a small collector with SAX-style
events. Decoded text first goes through a tag balancer, so unterminated
elements such as <p> are closed when an enclosing element ends. The
collector only descends along the path described by a depth-indexed tag
table and stops once the metadata section closes, so the body of the book
is never read.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping

from lxml import etree

from fb2index.ingestion.balancing import TagBalancer
from fb2index.ingestion.models import DocumentMetadata, TitleInfo


@dataclass(frozen=True, slots=True)
class TagTable:
    """Element names recognized at each nesting depth.

    Each level maps a local element name to whether closing it ends the parse.
    Names match exactly, namespace prefixes aside.
    """

    levels: tuple[Mapping[str, bool], ...]

    @classmethod
    def build(cls, levels: Iterable[Mapping[str, bool]]) -> "TagTable":
        return cls(levels=tuple(MappingProxyType(dict(level)) for level in levels))

    def expects(self, depth: int, name: str) -> bool:
        return 0 <= depth < len(self.levels) and name in self.levels[depth]

    def closes(self, depth: int, name: str) -> bool | None:
        """Return the terminal flag for name at depth, or None if not expected there."""

        if not self.expects(depth, name):
            return None
        return self.levels[depth][name]


DEFAULT_TAG_TABLE = TagTable.build(
    (
        {"FictionBook": False},
        {"description": True},
        {"title-info": True},
        {
            "genre": False,
            "author": False,
            "book-title": False,
            "annotation": False,
            "date": False,
            "lang": False,
        },
        {
            "first-name": False,
            "middle-name": False,
            "last-name": False,
            "nickname": False,
        },
    )
)


def _set_genre(info: TitleInfo, text: str) -> None:
    info.genre = text


def _set_first_name(info: TitleInfo, text: str) -> None:
    info.author.first_name = text


def _set_middle_name(info: TitleInfo, text: str) -> None:
    info.author.middle_name = text


def _set_last_name(info: TitleInfo, text: str) -> None:
    info.author.last_name = text


def _set_nickname(info: TitleInfo, text: str) -> None:
    info.author.nickname = text


def _set_book_title(info: TitleInfo, text: str) -> None:
    info.book_title = text


def _set_date(info: TitleInfo, text: str) -> None:
    info.date = text


def _set_lang(info: TitleInfo, text: str) -> None:
    info.lang = text


def _add_annotation(info: TitleInfo, text: str) -> None:
    paragraph = text.strip()
    if paragraph:
        info.annotation.append(paragraph)


_FIELD_SETTERS: Mapping[str, Callable[[TitleInfo, str], None]] = MappingProxyType(
    {
        "genre": _set_genre,
        "first-name": _set_first_name,
        "middle-name": _set_middle_name,
        "last-name": _set_last_name,
        "nickname": _set_nickname,
        "book-title": _set_book_title,
        "date": _set_date,
        "lang": _set_lang,
        "annotation": _add_annotation,
    }
)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    local = tag.rpartition("}")[2]
    return local.rpartition(":")[2]


class TitleInfoCollector:
    """lxml parser target accumulating <title-info> fields."""

    def __init__(self, table: TagTable = DEFAULT_TAG_TABLE) -> None:
        self._table = table
        self._depth = 0
        self._element = ""
        self._text: list[str] = []
        self.metadata = DocumentMetadata()
        self.finished = False

    def start(self, tag: str, attrib: Mapping[str, str], nsmap: Mapping[str, str] | None = None) -> None:
        if self.finished:
            return
        self._flush()
        name = _local_name(tag)
        if self._table.expects(self._depth, name):
            self._element = name
            self._depth += 1

    def end(self, tag: str) -> None:
        if self.finished:
            return
        self._flush()
        terminal = self._table.closes(self._depth - 1, _local_name(tag))
        if terminal is None:
            return
        self._depth -= 1
        if terminal:
            self.finished = True
            return
        self._element = ""

    def data(self, data: str) -> None:
        if not self.finished and self._element:
            self._text.append(data)

    def close(self) -> DocumentMetadata:
        self._flush()
        return self.metadata

    def _flush(self) -> None:
        if not self._text:
            return
        text = "".join(self._text)
        self._text.clear()
        setter = _FIELD_SETTERS.get(self._element)
        if setter is not None:
            setter(self.metadata.title_info, text)


def parse_title_info(chunks: Iterable[str], table: TagTable = DEFAULT_TAG_TABLE) -> DocumentMetadata:
    """Parse decoded document text and return the collected metadata.

    Stops consuming chunks as soon as the metadata section closes. Running out
    of input earlier is not an error: whatever was collected is returned.
    """

    collector = TitleInfoCollector(table)
    balancer = TagBalancer()
    parser = etree.XMLParser(
        target=collector,
        encoding="utf-8",
        recover=True,
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
    )
    fed = False
    for chunk in chunks:
        markup = balancer.feed(chunk)
        if not markup:
            continue
        parser.feed(markup.encode("utf-8"))
        fed = True
        if collector.finished:
            return collector.metadata

    tail = balancer.close()
    if tail:
        parser.feed(tail.encode("utf-8"))
        fed = True
    if not fed:
        return collector.metadata
    parser.close()
    return collector.metadata
