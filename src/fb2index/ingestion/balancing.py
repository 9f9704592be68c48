"""Incremental tag balancing for loosely nested FictionBook markup.

Documents in the wild leave elements such as <p> unclosed and close others
out of order. ``TagBalancer`` rewrites decoded text into a well-nested
element stream before it reaches the XML parser:

* an end tag closes every element opened after its matching start tag;
* an end tag with no open counterpart is dropped;
* elements still open at the end of input are closed.

Only element names, character data and CDATA sections pass through.
Attributes, namespace prefixes, comments, processing instructions and
doctype declarations are dropped since the metadata collector never reads
them. Everything is wrapped in a single synthetic root so stray top-level
content cannot end the parse early.
"""

from __future__ import annotations

import re


STREAM_ROOT = "fb2index-stream"

_NAME = r"[^\W\d][\w.:-]*"
_NAME_RE = re.compile(_NAME)
_START_TAG_RE = re.compile(rf"""<({_NAME})((?:[^<>"']|"[^"]*"|'[^']*')*)>""")
_PARTIAL_START_TAG_RE = re.compile(rf"""<(?:{_NAME}(?:[^<>"']|"[^"]*"|'[^']*')*(?:"[^"]*|'[^']*)?)?\Z""")
_END_TAG_RE = re.compile(rf"</\s*({_NAME})\s*>")
_PARTIAL_END_TAG_RE = re.compile(rf"</\s*(?:{_NAME}\s*)?\Z")
_BARE_AMPERSAND_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#[0-9]+|#x[0-9A-Fa-f]+);)")
_INVALID_CHARS_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

_CDATA_OPEN = "<![CDATA["
# Delimited constructs: (opener, closer, kept in output)
_DELIMITED = (
    ("<!--", "-->", False),
    (_CDATA_OPEN, "]]>", True),
    ("<?", "?>", False),
)


def _output_name(name: str) -> str:
    local = name.rpartition(":")[2]
    if _NAME_RE.fullmatch(local):
        return local
    return name.replace(":", "_")


def _declaration_end(buffer: str, start: int) -> int | None:
    close = buffer.find(">", start)
    subset = buffer.find("[", start, close if close >= 0 else len(buffer))
    if subset >= 0:
        close = buffer.find("]", subset)
        if close >= 0:
            close = buffer.find(">", close)
    if close < 0:
        return None
    return close + 1


def escape_text(text: str) -> str:
    """Make character data safe for an XML parser while keeping its meaning."""

    text = _INVALID_CHARS_RE.sub("", text)
    text = _BARE_AMPERSAND_RE.sub("&amp;", text)
    return text.replace("<", "&lt;").replace(">", "&gt;")


class TagBalancer:
    """Rewrite decoded chunks into well-nested markup.

    ``feed`` returns the markup that is complete so far; text and partial
    tags at the end of a chunk are held back until the next call. ``close``
    flushes the rest and closes every open element.
    """

    def __init__(self) -> None:
        self._open: list[str] = []
        self._pending = ""
        self._started = False

    def feed(self, text: str) -> str:
        if not text:
            return ""
        out: list[str] = []
        if not self._started:
            self._started = True
            out.append(f"<{STREAM_ROOT}>")
        self._pending += text
        self._drain(out, final=False)
        return "".join(out)

    def close(self) -> str:
        if not self._started:
            return ""
        out: list[str] = []
        self._drain(out, final=True)
        while self._open:
            out.append(f"</{self._open.pop()}>")
        out.append(f"</{STREAM_ROOT}>")
        return "".join(out)

    def _drain(self, out: list[str], *, final: bool) -> None:
        buffer = self._pending
        pos = 0
        while True:
            lt = buffer.find("<", pos)
            if lt < 0:
                if final:
                    out.append(escape_text(buffer[pos:]))
                    pos = len(buffer)
                break
            out.append(escape_text(buffer[pos:lt]))
            consumed = self._markup(out, buffer, lt)
            if consumed is None:
                # Incomplete markup waits for more input, or is dropped at the end.
                pos = len(buffer) if final else lt
                break
            pos = consumed
        self._pending = buffer[pos:]

    def _markup(self, out: list[str], buffer: str, lt: int) -> int | None:
        """Translate the construct starting at ``lt``; None when it is incomplete."""

        tail_is_short = len(buffer) - lt < len(_CDATA_OPEN)
        for opener, closer, kept in _DELIMITED:
            if buffer.startswith(opener, lt):
                end = buffer.find(closer, lt + len(opener))
                if end < 0:
                    return None
                end += len(closer)
                if kept:
                    out.append(buffer[lt:end])
                return end
            if tail_is_short and opener.startswith(buffer[lt:]):
                return None

        if buffer.startswith("<!", lt):
            return _declaration_end(buffer, lt)

        if buffer.startswith("</", lt):
            match = _END_TAG_RE.match(buffer, lt)
            if match:
                self._close_element(out, _output_name(match.group(1)))
                return match.end()
            if _PARTIAL_END_TAG_RE.match(buffer, lt):
                return None
            out.append("&lt;")
            return lt + 1

        match = _START_TAG_RE.match(buffer, lt)
        if match:
            name, attributes = match.groups()
            name = _output_name(name)
            if attributes.rstrip().endswith("/"):
                out.append(f"<{name}/>")
            else:
                self._open.append(name)
                out.append(f"<{name}>")
            return match.end()
        if _PARTIAL_START_TAG_RE.match(buffer, lt):
            return None
        out.append("&lt;")
        return lt + 1

    def _close_element(self, out: list[str], name: str) -> None:
        if name not in self._open:
            return
        while True:
            opened = self._open.pop()
            out.append(f"</{opened}>")
            if opened == name:
                return
