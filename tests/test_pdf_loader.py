"""Tests for PDF text extraction."""

from __future__ import annotations

from pathlib import Path
from typing import List
from unittest.mock import MagicMock, patch

import pytest

from docshelf.ingestion.pdf_loader import PdfPlumberExtractor, PyMuPDFExtractor, _PageExtractor


def _fitz_doc(texts: List[str]) -> MagicMock:
    pages = []
    for text in texts:
        page = MagicMock()
        page.get_text.return_value = text
        pages.append(page)

    doc = MagicMock()
    doc.__len__ = MagicMock(return_value=len(pages))
    doc.__getitem__ = MagicMock(side_effect=lambda i: pages[i])
    return doc


def _plumber_pdf(texts: List[str]) -> MagicMock:
    pages = []
    for text in texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)

    pdf = MagicMock()
    pdf.pages = pages
    return pdf


class TestPyMuPDFExtractor:
    """Test the primary extractor."""

    @patch("docshelf.ingestion.pdf_loader.fitz")
    def test_iter_pages(self, mock_fitz: MagicMock, tmp_path: Path) -> None:
        """Should yield one normalized string per page."""
        doc = _fitz_doc(["Page 1\n\n  text  ", "", "Page 3"])
        mock_fitz.open.return_value = doc

        pages = list(PyMuPDFExtractor().iter_pages(tmp_path / "test.pdf"))

        assert pages == ["Page 1\ntext", "", "Page 3"]
        doc.close.assert_called_once()

    @patch("docshelf.ingestion.pdf_loader.fitz")
    def test_max_pages(self, mock_fitz: MagicMock, tmp_path: Path) -> None:
        """Should stop after max_pages pages."""
        mock_fitz.open.return_value = _fitz_doc(["one", "two", "three", "four"])

        text = PyMuPDFExtractor().extract_text(tmp_path / "test.pdf", max_pages=3)

        assert text == "one\ntwo\nthree"

    @patch("docshelf.ingestion.pdf_loader.fitz")
    def test_max_pages_beyond_length(self, mock_fitz: MagicMock, tmp_path: Path) -> None:
        mock_fitz.open.return_value = _fitz_doc(["only"])

        assert PyMuPDFExtractor().extract_text(tmp_path / "test.pdf", max_pages=3) == "only"

    @patch("docshelf.ingestion.pdf_loader.fitz")
    def test_skips_empty_pages_when_joining(self, mock_fitz: MagicMock, tmp_path: Path) -> None:
        mock_fitz.open.return_value = _fitz_doc(["first", "   ", "third"])

        assert PyMuPDFExtractor().extract_text(tmp_path / "test.pdf") == "first\nthird"

    @patch("docshelf.ingestion.pdf_loader.fitz")
    @patch("docshelf.ingestion.pdf_loader.LOGGER")
    def test_open_error(self, mock_logger: MagicMock, mock_fitz: MagicMock, tmp_path: Path) -> None:
        """Should log error and return empty on file open failure."""
        mock_fitz.open.side_effect = Exception("Cannot open file")

        assert list(PyMuPDFExtractor().iter_pages(tmp_path / "broken.pdf")) == []
        assert mock_logger.error.called


class TestPdfPlumberExtractor:
    """Test the fallback extractor."""

    @patch("docshelf.ingestion.pdf_loader.pdfplumber")
    def test_extract_text(self, mock_plumber: MagicMock, tmp_path: Path) -> None:
        """Should join the text of the first pages."""
        mock_plumber.open.return_value = _plumber_pdf(["scan one", None, "scan three"])

        text = PdfPlumberExtractor().extract_text(tmp_path / "scan.pdf", max_pages=2)

        assert text == "scan one"
        mock_plumber.open.assert_called_once_with(str(tmp_path / "scan.pdf"))

    @patch("docshelf.ingestion.pdf_loader.pdfplumber")
    def test_all_pages(self, mock_plumber: MagicMock, tmp_path: Path) -> None:
        mock_plumber.open.return_value = _plumber_pdf(["a", "b", "c"])

        assert list(PdfPlumberExtractor().iter_pages(tmp_path / "scan.pdf")) == ["a", "b", "c"]

    @patch("docshelf.ingestion.pdf_loader.pdfplumber")
    @patch("docshelf.ingestion.pdf_loader.LOGGER")
    def test_open_error(self, mock_logger: MagicMock, mock_plumber: MagicMock, tmp_path: Path) -> None:
        mock_plumber.open.side_effect = Exception("not a pdf")

        assert PdfPlumberExtractor().extract_text(tmp_path / "broken.pdf") == ""
        assert mock_logger.error.called


def test_page_extractor_requires_iter_pages() -> None:
    with pytest.raises(TypeError):
        _PageExtractor()
