"""DocShelf: a self-organizing PDF library with duplicate detection and semantic search."""

__version__ = "0.1.0"
