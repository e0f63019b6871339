"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from docshelf.cli import _build_config, _setup_logging, app
from docshelf.errors import DocumentNotFoundError
from docshelf.index.indexer import IndexStats
from docshelf.index.search import SearchResult
from docshelf.models import BatchResult, DocumentRecord, OperationResult, ScanResult

runner = CliRunner()


@pytest.fixture
def service() -> MagicMock:
    """Patch the library service built by every command."""
    with patch("docshelf.cli.LibraryService") as service_cls:
        yield service_cls.from_config.return_value


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("docshelf.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("docshelf.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestBuildConfig:
    def test_overrides(self, tmp_path: Path) -> None:
        """Explicit paths and options win over defaults."""
        config = _build_config(tmp_path / "x.db", tmp_path / "files", use_classifier=False)

        assert config.db_path == tmp_path / "x.db"
        assert config.library_dir == tmp_path / "files"
        assert config.use_classifier is False


class TestIngestCommand:
    """Tests for the ingest command."""

    def test_no_pdfs_found(self, tmp_path: Path, service: MagicMock) -> None:
        """Shows warning when no PDFs are found."""
        empty_dir = tmp_path / "empty"
        empty_dir.mkdir()

        result = runner.invoke(app, ["ingest", str(empty_dir), "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "No PDFs found" in result.stdout
        service.ingest.assert_not_called()

    def test_ingest_pdfs(self, tmp_path: Path, service: MagicMock) -> None:
        """Ingests and reports the number of documents."""
        pdf_dir = tmp_path / "pdfs"
        pdf_dir.mkdir()
        (pdf_dir / "test.pdf").write_bytes(b"%PDF-1.4 fake pdf content")
        service.ingest.return_value = [MagicMock()]

        result = runner.invoke(app, ["ingest", str(pdf_dir), "--no-process", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Ingested 1 documents" in result.stdout
        assert service.ingest.call_args.kwargs["process"] is False
        service.close.assert_called_once()

    def test_no_ai_disables_classifier(self, tmp_path: Path) -> None:
        pdf_dir = tmp_path / "pdfs"
        pdf_dir.mkdir()
        (pdf_dir / "test.pdf").write_bytes(b"%PDF")

        with patch("docshelf.cli.LibraryService") as service_cls:
            service_cls.from_config.return_value.ingest.return_value = []
            runner.invoke(app, ["ingest", str(pdf_dir), "--no-ai", "--db", str(tmp_path / "t.db")])

        config = service_cls.from_config.call_args.args[0]
        assert config.use_classifier is False


class TestProcessCommand:
    def test_process_pending(self, tmp_path: Path, service: MagicMock) -> None:
        service.process_pending.return_value = BatchResult(total=3, done=2, errors=1, progress=1.0)

        result = runner.invoke(app, ["process", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Done: 2, errors: 1, total: 3" in result.stdout


class TestListCommand:
    def test_empty(self, tmp_path: Path, service: MagicMock) -> None:
        service.documents.return_value = []

        result = runner.invoke(app, ["list", "--db", str(tmp_path / "test.db")])

        assert "Library is empty" in result.stdout

    def test_table(self, tmp_path: Path, service: MagicMock) -> None:
        service.documents.return_value = [
            DocumentRecord(file_path=tmp_path / "a.pdf", original_filename="a.pdf", file_size=1, title="Lease")
        ]

        with patch("docshelf.cli.console", Console(width=200)):
            result = runner.invoke(app, ["list", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Lease" in result.stdout


class TestDocumentCommands:
    def test_delete_missing_document(self, tmp_path: Path, service: MagicMock) -> None:
        """Library errors become a message and exit code 1."""
        service.get.side_effect = DocumentNotFoundError("abc")

        result = runner.invoke(app, ["delete", "abc", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 1
        assert "Document not found: abc" in result.stdout
        service.close.assert_called_once()

    def test_rename_collision(self, tmp_path: Path, service: MagicMock) -> None:
        service.rename_to_title.return_value = OperationResult.failure("file already exists: Receipt.pdf")

        result = runner.invoke(app, ["rename", "abc", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Not renamed" in result.stdout

    def test_index(self, tmp_path: Path, service: MagicMock) -> None:
        service.reindex.return_value = IndexStats(indexed=2, chunks=7)

        result = runner.invoke(app, ["index", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Indexed: 2" in result.stdout
        service.reindex.assert_called_once_with(None)


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_no_results(self, tmp_path: Path, service: MagicMock) -> None:
        """Shows message when no results found."""
        service.search.return_value = []

        result = runner.invoke(app, ["search", "test query", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "No matches found" in result.stdout

    def test_search_with_results(self, tmp_path: Path, service: MagicMock) -> None:
        """Displays results in a table."""
        service.search.return_value = [
            SearchResult(document_id="d", title="Doc", page_index=0, chunk_index=0, score=0.95, text="snippet")
        ]

        result = runner.invoke(app, ["search", "test query", "--doc", "d", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "0.9500" in result.stdout
        assert service.search.call_args.kwargs["scope"] == ["d"]


class TestCompareCommand:
    def test_compare(self, tmp_path: Path, service: MagicMock) -> None:
        service.compare.return_value = 0.8

        result = runner.invoke(app, ["compare", "a", "b", "--db", str(tmp_path / "test.db")])

        assert "80%" in result.stdout
        service.compare.assert_called_once_with("a", "b")


class TestDuplicateCommands:
    def test_duplicates_report(self, tmp_path: Path, service: MagicMock) -> None:
        service.scan_duplicates.return_value = ScanResult(
            count=1,
            report='Scanned 2 files. Found 1 groups.\n- [Exact Match] "a.pdf" has 1 copies',
            duplicates=[],
            highlight_ids=set(),
            groups=[],
        )

        result = runner.invoke(app, ["duplicates", "--db", str(tmp_path / "test.db")])

        assert "Found 1 groups" in result.stdout
        assert "[Exact Match]" in result.stdout

    def test_clean_requires_confirmation(self, tmp_path: Path, service: MagicMock) -> None:
        result = runner.invoke(app, ["clean", "--db", str(tmp_path / "test.db")], input="n\n")

        assert result.exit_code == 1
        service.clean_duplicates.assert_not_called()

    def test_clean(self, tmp_path: Path, service: MagicMock) -> None:
        service.clean_duplicates.return_value = 2

        result = runner.invoke(app, ["clean", "--yes", "--db", str(tmp_path / "test.db")])

        assert "Removed 2 duplicates" in result.stdout


class TestPruneCommand:
    """Tests for the prune command."""

    def test_prune_success(self, tmp_path: Path, service: MagicMock) -> None:
        """Successfully prunes orphaned documents."""
        service.prune.return_value = OperationResult.success({"records": 3, "files": 1, "failed": 0})

        result = runner.invoke(app, ["prune", "--db", str(tmp_path / "test.db")])

        assert result.exit_code == 0
        assert "Removed 3 orphaned records and 1 orphaned files" in result.stdout


class TestWebCommand:
    """Tests for the web command."""

    def test_web_starts_server(self, tmp_path: Path, service: MagicMock) -> None:
        """Starts uvicorn server with correct parameters."""
        with patch("uvicorn.run") as mock_uvicorn_run:
            result = runner.invoke(
                app, ["web", "--host", "0.0.0.0", "--port", "9000", "--db", str(tmp_path / "test.db")]
            )

        assert result.exit_code == 0
        mock_uvicorn_run.assert_called_once()
        call_kwargs = mock_uvicorn_run.call_args[1]
        assert call_kwargs["host"] == "0.0.0.0"
        assert call_kwargs["port"] == 9000
        assert mock_uvicorn_run.call_args[0][0].state.service is service
