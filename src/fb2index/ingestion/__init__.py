"""Archive discovery and FB2 metadata extraction stages."""

from .archives import ArchiveScanner, SharedArchive
from .extractor import MetadataExtractor, ParseOutcome, parse_with_fallback
from .fb2_parser import DEFAULT_TAG_TABLE, TagTable, parse_title_info
from .models import BookRecord, DocumentMetadata, ExtractionTask

__all__ = [
    "ArchiveScanner",
    "BookRecord",
    "DEFAULT_TAG_TABLE",
    "DocumentMetadata",
    "ExtractionTask",
    "MetadataExtractor",
    "ParseOutcome",
    "SharedArchive",
    "TagTable",
    "parse_title_info",
    "parse_with_fallback",
]
