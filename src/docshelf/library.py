"""The library service: one object owning storage, pipeline and indexes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from docshelf.config import AppConfig
from docshelf.dedup.detector import DuplicateDetector
from docshelf.embedding.encoder import EmbeddingConfig, EmbeddingProvider, SentenceEmbeddingProvider
from docshelf.errors import DocumentNotFoundError
from docshelf.index.indexer import Indexer, IndexStats
from docshelf.index.search import Searcher, SearchResult
from docshelf.index.semantic import SemanticIndex
from docshelf.index.storage import LibraryStore
from docshelf.ingestion.byte_store import LibraryFileStore
from docshelf.ingestion.classifier import Classifier, OllamaClassifier
from docshelf.ingestion.pdf_loader import PdfPlumberExtractor, PyMuPDFExtractor, TextExtractor
from docshelf.ingestion.processor import DocumentProcessor, ProgressCallback
from docshelf.models import (
    BatchResult,
    DocumentRecord,
    OperationResult,
    ProcessingStatus,
    ScanResult,
)
from docshelf.utils.files import content_fingerprint, iter_pdf_paths, sanitize_filename

LOGGER = logging.getLogger(__name__)


class LibraryService:
    """Entry point for every library operation.

    Construct once per process and pass it to whoever needs it; call
    :meth:`close` at shutdown.
    """

    def __init__(
        self,
        store: LibraryStore,
        files: LibraryFileStore,
        embedder: EmbeddingProvider,
        *,
        primary: TextExtractor | None = None,
        fallback: TextExtractor | None = None,
        classifier: Classifier | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.store = store
        self.files = files
        self.embedder = embedder
        self.classifier = classifier
        self.primary = primary or PyMuPDFExtractor()
        self.fallback = fallback or PdfPlumberExtractor()
        self.index = SemanticIndex(embedder, store, self.config)
        self.indexer = Indexer(self.index, self.primary, self.fallback)
        self.searcher = Searcher(self.index, store)
        self.detector = DuplicateDetector(store, embedder, self.config.duplicates)
        self.processor = DocumentProcessor(
            store,
            self.primary,
            self.fallback,
            classifier=classifier,
            indexer=self.indexer,
            config=self.config,
        )

    @classmethod
    def from_config(cls, config: AppConfig, base_dir: Path | None = None) -> "LibraryService":
        db_path = config.resolve_db_path(base_dir)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        classifier = None
        if config.use_classifier:
            classifier = OllamaClassifier(
                config.ollama_url,
                config.ollama_model,
                timeout=config.classify_timeout,
                max_chars=config.preview_chars,
            )
        return cls(
            LibraryStore(db_path),
            LibraryFileStore(config.resolve_library_dir(base_dir)),
            SentenceEmbeddingProvider(EmbeddingConfig(model_name=config.model_name)),
            classifier=classifier,
            config=config,
        )

    def close(self) -> None:
        if isinstance(self.classifier, OllamaClassifier):
            self.classifier.close()
        self.store.close()

    # -- records -------------------------------------------------------

    def get(self, doc_id: str) -> DocumentRecord:
        record = self.store.get_document(doc_id)
        if record is None:
            raise DocumentNotFoundError(doc_id)
        return record

    def documents(self) -> List[DocumentRecord]:
        return self.store.list_documents()

    # -- ingestion and processing ------------------------------------

    def ingest(
        self,
        paths: Sequence[Path],
        *,
        process: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> List[DocumentRecord]:
        """Copy PDFs into the library and (optionally) process them."""
        records: List[DocumentRecord] = []
        for path in iter_pdf_paths(paths):
            try:
                size = path.stat().st_size
                file_hash = content_fingerprint(path)
                doc_id, stored = self.files.copy(path)
            except OSError as exc:
                LOGGER.warning("Cannot ingest %s: %s", path, exc)
                continue

            if file_hash is not None:
                existing = self.store.find_by_hash(file_hash)
                if existing:
                    LOGGER.info("Duplicate ingested: %s (matches %s)", path.name, existing[0].display_name)

            record = DocumentRecord(
                id=doc_id,
                file_path=stored,
                original_filename=path.name,
                file_size=size,
                file_hash=file_hash,
            )
            self.store.add_document(record)
            records.append(record)
            LOGGER.info("Ingested: %s -> %s", path.name, stored.name)

        if process and records:
            self.processor.process(records, on_progress)
        return records

    def process_pending(self, on_progress: ProgressCallback | None = None) -> BatchResult:
        """Process every document still waiting, oldest first."""
        pending = self.store.list_documents(ProcessingStatus.PENDING)
        return self.processor.process(pending, on_progress)

    def cancel_processing(self) -> None:
        self.processor.cancel()

    def reanalyze(self, doc_id: str) -> BatchResult:
        return self.processor.process([self.get(doc_id)])

    # -- library management -------------------------------------------

    def delete_document(self, record: DocumentRecord) -> bool:
        """Remove a document's stored bytes, its record and its chunks."""
        outcome = self.files.delete(record.file_path)
        if not outcome.ok:
            LOGGER.warning("Stored file for %s not removed: %s", record.display_name, outcome.reason)
        deleted = self.store.delete_document(record.id)
        if deleted:
            LOGGER.info("Deleted: %s", record.display_name)
        return deleted

    def rename_to_title(self, doc_id: str) -> OperationResult:
        record = self.get(doc_id)
        if not record.title:
            return OperationResult.failure("document has no inferred title")
        stem = sanitize_filename(record.title)
        if not stem:
            return OperationResult.failure("title is empty after sanitizing")

        new_name = f"{stem}.pdf"
        try:
            target = self.files.move(record.file_path, new_name)
        except FileExistsError:
            LOGGER.warning("File already exists: %s", new_name)
            return OperationResult.failure(f"file already exists: {new_name}")
        except OSError as exc:
            LOGGER.error("Failed to rename %s: %s", record.file_path, exc)
            return OperationResult.failure(str(exc))

        record.file_path = target
        record.original_filename = new_name
        self.store.update_document(record)
        LOGGER.info("Renamed file to: %s", new_name)
        return OperationResult.success(target)

    def prune(self) -> OperationResult:
        """Drop records without files and files without records.

        The value is a dict with ``records`` and ``files`` removed counts and
        the number of files that could not be removed.
        """
        removed_records = self.store.remove_missing_files()
        known = {Path(record.file_path).resolve() for record in self.store.list_documents()}
        removed_files = 0
        failed = 0
        for path in self.files.list_directory():
            if path.resolve() in known:
                continue
            outcome = self.files.delete(path)
            if outcome.ok:
                removed_files += 1
            else:
                failed += 1
                LOGGER.warning("Could not prune orphan %s: %s", path.name, outcome.reason)
        LOGGER.info("Pruned %d records and %d orphan files", len(removed_records), removed_files)
        return OperationResult.success(
            {"records": len(removed_records), "files": removed_files, "failed": failed}
        )

    # -- semantic features --------------------------------------------

    def reindex(self, doc_id: Optional[str] = None) -> IndexStats:
        records = [self.get(doc_id)] if doc_id else self.store.list_documents()
        return self.indexer.index(records)

    def search(
        self, query: str, *, top_k: int = 10, scope: Iterable[str] | None = None
    ) -> List[SearchResult]:
        return self.searcher.search(query, top_k=top_k, scope=scope)

    def _full_text(self, record: DocumentRecord) -> str:
        text = self.primary.extract_text(record.file_path)
        return text if text.strip() else record.text_preview or ""

    def compare(self, doc_a: str, doc_b: str) -> float:
        """How much of document A is covered by document B."""
        first, second = self.get(doc_a), self.get(doc_b)
        return self.index.compare_documents(self._full_text(first), self._full_text(second))

    # -- duplicates -----------------------------------------------------

    def scan_duplicates(self) -> ScanResult:
        return self.detector.scan()

    def clean_duplicates(self) -> int:
        return self.detector.clean(self.delete_document)
