"""Clipboard history service with encrypted SQLite storage and word search."""

__version__ = "1.0.3"