"""Book metadata storage and the indexing pipeline."""

from .repository import BookRepository

__all__ = ["BookRepository"]
