"""Sequential per-document processing: extract, index, categorize, persist."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

from docshelf.config import AppConfig
from docshelf.errors import ClassificationError
from docshelf.index.indexer import Indexer
from docshelf.index.storage import LibraryStore
from docshelf.ingestion.classifier import Classifier, heuristic_classification
from docshelf.ingestion.pdf_loader import TextExtractor
from docshelf.models import BatchResult, DocumentRecord, ItemFailure, ProcessingStatus

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[float, DocumentRecord], None]


class DocumentProcessor:
    """Moves documents through ``pending -> analyzing -> done | error``.

    Documents are handled one at a time; the model behind the classifier
    is usually a scarce local resource. Cancellation is only observed
    between documents.
    """

    def __init__(
        self,
        store: LibraryStore,
        primary: TextExtractor,
        fallback: TextExtractor,
        classifier: Optional[Classifier] = None,
        indexer: Optional[Indexer] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.store = store
        self.primary = primary
        self.fallback = fallback
        self.classifier = classifier
        self.indexer = indexer
        self.config = config or AppConfig()
        self._batch_lock = threading.Lock()
        self._cancel = threading.Event()
        self._progress = 0.0
        self._processing = False

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def is_processing(self) -> bool:
        return self._processing

    def cancel(self) -> None:
        """Stop after the document currently being processed."""
        self._cancel.set()

    def process(
        self, records: Sequence[DocumentRecord], on_progress: ProgressCallback | None = None
    ) -> BatchResult:
        result = BatchResult(total=len(records))
        with self._batch_lock:
            self._cancel.clear()
            self._processing = True
            self._progress = 0.0
            LOGGER.info("Starting processing queue with %d documents", len(records))
            try:
                for index, record in enumerate(records):
                    if self._cancel.is_set():
                        LOGGER.info("Processing cancelled after %d of %d documents", index, len(records))
                        result.cancelled = True
                        result.remaining_ids = [pending.id for pending in records[index:]]
                        break

                    try:
                        failure = self.process_one(record)
                    except Exception as exc:
                        LOGGER.error("Processing failed for %s: %s", record.original_filename, exc)
                        failure = self._mark_failed(record, "process", str(exc))
                    if failure is None:
                        result.done += 1
                    else:
                        result.errors += 1
                        result.failures.append(failure)

                    self._progress = (index + 1) / len(records)
                    if on_progress is not None:
                        on_progress(self._progress, record)
            finally:
                self._cancel.clear()
                self._processing = False
        result.progress = self._progress
        return result

    def _extract(self, record: DocumentRecord) -> str:
        text = self.primary.extract_text(record.file_path, self.config.primary_pages)
        if text.strip():
            return text
        LOGGER.warning("Primary extraction empty for %s, trying fallback", record.original_filename)
        return self.fallback.extract_text(record.file_path, self.config.fallback_pages)

    def _mark_failed(self, record: DocumentRecord, operation: str, reason: str) -> ItemFailure:
        record.status = ProcessingStatus.ERROR
        record.emoji = "📄"
        record.title = record.original_filename
        record.category = "Document"
        self.store.update_document(record)
        return ItemFailure(record.id, operation, reason)

    def process_one(self, record: DocumentRecord) -> ItemFailure | None:
        """Run the pipeline for one document. Returns a failure when it ends in ``error``."""
        record.status = ProcessingStatus.ANALYZING
        self.store.update_document(record)

        text = self._extract(record)
        if not text.strip():
            LOGGER.warning("No text extracted from %s", record.original_filename)
            return self._mark_failed(record, "extract", "no text extracted")

        record.text_preview = text[: self.config.preview_chars]

        if self.indexer is not None:
            try:
                self.indexer.index_record(record)
            except Exception as exc:
                LOGGER.warning("Indexing failed for %s: %s", record.original_filename, exc)

        analysis = None
        if self.classifier is not None:
            try:
                analysis = self.classifier.classify(record.text_preview)
            except ClassificationError as exc:
                LOGGER.warning("AI analysis failed for %s: %s", record.original_filename, exc)
        if analysis is None:
            analysis = heuristic_classification(record.text_preview)

        record.title = analysis.title
        record.category = analysis.category
        record.emoji = analysis.emoji
        record.tags = list(analysis.tags)
        record.confidence = analysis.confidence
        record.status = ProcessingStatus.DONE
        self.store.update_document(record)
        LOGGER.info("Processed: %s [%s] - %s", record.display_name, record.emoji, record.category)
        return None
