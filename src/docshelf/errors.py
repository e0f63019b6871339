"""Exception types raised by DocShelf."""

from __future__ import annotations


class DocShelfError(Exception):
    """Base class for library errors."""


class DocumentNotFoundError(DocShelfError):
    def __init__(self, doc_id: str) -> None:
        super().__init__(f"Document not found: {doc_id}")
        self.doc_id = doc_id


class ClassificationError(DocShelfError):
    """The categorization model could not produce a usable answer."""
