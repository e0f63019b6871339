"""PDF text extraction.

PyMuPDF (fitz) is the primary extractor; pdfplumber is tried when PyMuPDF
yields nothing, which happens with some malformed or oddly encoded files.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Protocol

import fitz  # PyMuPDF
import pdfplumber

from docshelf.utils.text import normalize_whitespace

LOGGER = logging.getLogger(__name__)


class TextExtractor(Protocol):
    def iter_pages(self, path: Path, max_pages: int | None = None) -> Iterator[str]: ...

    def extract_text(self, path: Path, max_pages: int | None = None) -> str: ...


class _PageExtractor(ABC):
    name = "extractor"

    @abstractmethod
    def iter_pages(self, path: Path, max_pages: int | None = None) -> Iterator[str]:
        """Yield the text of each page, one string per page."""

    def extract_text(self, path: Path, max_pages: int | None = None) -> str:
        """Join the text of the first ``max_pages`` pages, one page per block."""
        parts = [text for text in self.iter_pages(path, max_pages) if text]
        text = "\n".join(parts)
        LOGGER.debug("%s extracted %d chars from %s", self.name, len(text), path.name)
        return text


class PyMuPDFExtractor(_PageExtractor):
    """Page-by-page extraction with PyMuPDF.

    Yields one (possibly empty) string per page so callers can keep page
    numbering. Unreadable files produce no pages.
    """

    name = "pymupdf"

    def iter_pages(self, path: Path, max_pages: int | None = None) -> Iterator[str]:
        try:
            doc = fitz.open(path)
        except Exception as exc:
            LOGGER.error("Failed to open PDF %s: %s", path, exc)
            return

        try:
            count = len(doc) if max_pages is None else min(max_pages, len(doc))
            for index in range(count):
                try:
                    yield normalize_whitespace((doc[index].get_text() or "").splitlines())
                except Exception as exc:  # pragma: no cover - damaged page
                    LOGGER.warning("Failed to read page %s in %s: %s", index, path, exc)
                    yield ""
        finally:
            doc.close()


class PdfPlumberExtractor(_PageExtractor):
    """Fallback extraction with pdfplumber."""

    name = "pdfplumber"

    def iter_pages(self, path: Path, max_pages: int | None = None) -> Iterator[str]:
        try:
            pdf = pdfplumber.open(str(path))
        except Exception as exc:
            LOGGER.error("pdfplumber could not open %s: %s", path, exc)
            return

        with pdf:
            pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
            for index, page in enumerate(pages):
                try:
                    yield normalize_whitespace((page.extract_text() or "").splitlines())
                except Exception as exc:  # pragma: no cover - damaged page
                    LOGGER.warning("pdfplumber failed on page %s in %s: %s", index, path, exc)
                    yield ""
