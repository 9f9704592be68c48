"""Concurrent FB2-in-zip metadata indexer."""

__version__ = "0.1.0"
