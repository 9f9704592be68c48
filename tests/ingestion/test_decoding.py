from __future__ import annotations

import codecs
from io import BytesIO

import pytest

from fb2index.ingestion.decoding import iter_declared_text, iter_utf16_text, sniff_encoding

_DOCUMENT = '<?xml version="1.0" encoding="{encoding}"?>\n<FictionBook><book-title>Мастер и Маргарита</book-title></FictionBook>'


def test_sniff_encoding_prefers_bom_then_declaration() -> None:
    assert sniff_encoding(codecs.BOM_UTF8 + b'<?xml version="1.0" encoding="windows-1251"?>') == "utf-8-sig"
    assert sniff_encoding(b"<?xml version='1.0' encoding='windows-1251'?><a/>") == "windows-1251"
    assert sniff_encoding(b"<?xml version=\"1.0\"?><a/>") == "utf-8"
    assert sniff_encoding(b"<FictionBook/>") == "utf-8"


def test_declared_text_decodes_single_byte_encoding_and_drops_declaration() -> None:
    raw = _DOCUMENT.format(encoding="windows-1251").encode("cp1251")

    text = "".join(iter_declared_text(BytesIO(raw)))

    assert text.lstrip().startswith("<FictionBook>")
    assert "Мастер и Маргарита" in text
    assert "<?xml" not in text


def test_declared_text_reads_in_chunks() -> None:
    raw = _DOCUMENT.format(encoding="utf-8").encode("utf-8")

    chunks = list(iter_declared_text(BytesIO(raw), chunk_size=7))

    assert len(chunks) > 1
    assert "<?xml" not in "".join(chunks)
    assert "".join(chunks).strip().endswith("</FictionBook>")


def test_declared_text_yields_valid_prefix_before_decode_error() -> None:
    stream = BytesIO(b"<FictionBook><book-title>ok</book-title>\xff\xfe trailing")

    chunks = iter_declared_text(stream)
    first = next(chunks)

    assert first == "<FictionBook><book-title>ok</book-title>"
    with pytest.raises(UnicodeDecodeError):
        next(chunks)


def test_declared_text_rejects_unknown_encoding_label() -> None:
    raw = _DOCUMENT.format(encoding="x-no-such-codec").encode("utf-8")

    with pytest.raises(LookupError):
        list(iter_declared_text(BytesIO(raw)))


@pytest.mark.parametrize(
    ("prefix", "codec"),
    [
        (codecs.BOM_UTF16_LE, "utf-16-le"),
        (codecs.BOM_UTF16_BE, "utf-16-be"),
        (b"", "utf-16-le"),
    ],
)
def test_utf16_text_honors_byte_order_mark(prefix: bytes, codec: str) -> None:
    raw = prefix + _DOCUMENT.format(encoding="utf-16").encode(codec)

    text = "".join(iter_utf16_text(BytesIO(raw)))

    assert text.lstrip().startswith("<FictionBook>")
    assert "Мастер и Маргарита" in text


def test_declared_text_rejects_nul_characters_after_valid_prefix() -> None:
    raw = "<FictionBook>".encode("utf-8") + "<a>".encode("utf-16-le")

    chunks = iter_declared_text(BytesIO(raw))

    assert next(chunks) == "<FictionBook><"
    with pytest.raises(ValueError, match="NUL"):
        next(chunks)
