"""Decode strategies turning an entry byte stream into text chunks.

Each strategy reads the stream incrementally and yields decoded text with
any XML declaration removed, so the parser always receives plain UTF-8
regardless of what the document declared.
"""

from __future__ import annotations

import codecs
import re
from typing import IO, Callable, Iterator


READ_CHUNK_SIZE = 64 * 1024

DecodeStrategy = Callable[[IO[bytes]], Iterator[str]]

_DECLARED_ENCODING_RE = re.compile(rb"""^\s*<\?xml\s[^>]*?encoding\s*=\s*["']([A-Za-z0-9._:-]+)["']""")
_XML_DECLARATION_RE = re.compile(r"^\ufeff?\s*<\?xml[^>]*\?>")


def sniff_encoding(head: bytes) -> str:
    """Resolve the codec for a document from its first bytes."""

    if head.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    match = _DECLARED_ENCODING_RE.match(head)
    if match:
        return match.group(1).decode("ascii")
    return "utf-8"


def iter_declared_text(stream: IO[bytes], chunk_size: int = READ_CHUNK_SIZE) -> Iterator[str]:
    """Decode using the BOM or declared encoding, defaulting to UTF-8."""

    head = stream.read(chunk_size)
    yield from _iter_decoded(head, stream, sniff_encoding(head), chunk_size)


def iter_utf16_text(stream: IO[bytes], chunk_size: int = READ_CHUNK_SIZE) -> Iterator[str]:
    """Decode as UTF-16, little-endian unless a byte-order mark says otherwise."""

    head = stream.read(chunk_size)
    encoding = "utf-16-le"
    if head.startswith(codecs.BOM_UTF16_LE):
        head = head[len(codecs.BOM_UTF16_LE) :]
    elif head.startswith(codecs.BOM_UTF16_BE):
        head = head[len(codecs.BOM_UTF16_BE) :]
        encoding = "utf-16-be"
    yield from _iter_decoded(head, stream, encoding, chunk_size)


DEFAULT_STRATEGIES: tuple[DecodeStrategy, ...] = (iter_declared_text, iter_utf16_text)


def _strip_declaration(text: str) -> str:
    return _XML_DECLARATION_RE.sub("", text, count=1)


def _iter_decoded(head: bytes, stream: IO[bytes], encoding: str, chunk_size: int) -> Iterator[str]:
    decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
    # Text is held back until the end of a possible declaration has been seen.
    held = ""
    declaration_done = False
    chunk = head
    while chunk:
        error: Exception | None = None
        try:
            text = decoder.decode(chunk)
        except UnicodeDecodeError as exc:
            text = exc.object[: exc.start].decode(encoding)
            error = exc
        # XML never contains U+0000; seeing it means the guessed encoding is wrong.
        nul = text.find("\x00")
        if nul >= 0:
            text = text[:nul]
            error = error or ValueError(f"Text decoded as {encoding} contains NUL characters")

        if not declaration_done:
            held += text
            if ">" not in held and error is None:
                chunk = stream.read(chunk_size)
                continue
            text = _strip_declaration(held)
            held = ""
            declaration_done = True

        # The valid prefix goes out before any error: the parser may finish
        # inside it and close this generator first.
        if text:
            yield text
        if error is not None:
            raise error
        chunk = stream.read(chunk_size)

    tail = held + decoder.decode(b"", final=True)
    if "\x00" in tail:
        raise ValueError(f"Text decoded as {encoding} contains NUL characters")
    if not declaration_done:
        tail = _strip_declaration(tail)
    if tail:
        yield tail
