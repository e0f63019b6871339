"""Page-level indexing of library documents into the semantic index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from docshelf.index.semantic import SemanticIndex
from docshelf.ingestion.pdf_loader import TextExtractor
from docshelf.models import DocumentRecord, ItemFailure

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    chunks: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    def increment(self, status: str, chunk_count: int = 0) -> None:
        if status == "indexed":
            self.indexed += 1
            self.chunks += chunk_count
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1


class Indexer:
    """Replaces a document's chunks with freshly embedded ones.

    Pages come from ``extractor``; when it yields no text at all, the
    ``fallback`` extractor is read instead.
    """

    def __init__(
        self, index: SemanticIndex, extractor: TextExtractor, fallback: TextExtractor | None = None
    ) -> None:
        self._index = index
        self.extractor = extractor
        self.fallback = fallback

    def _pages(self, record: DocumentRecord) -> list[str]:
        pages = list(self.extractor.iter_pages(record.file_path))
        if self.fallback is not None and not any(page.strip() for page in pages):
            LOGGER.debug("Indexing %s from fallback extractor", record.display_name)
            pages = list(self.fallback.iter_pages(record.file_path))
        return pages

    def index_record(self, record: DocumentRecord) -> int:
        """Index every page of a document. Returns the number of chunks stored."""
        with self._index.store.transaction():
            self._index.remove_document(record.id)
            total = 0
            for page_index, text in enumerate(self._pages(record)):
                if not text.strip():
                    continue
                chunks = self._index.index_document(
                    text, record.id, page_index, source_name=record.display_name
                )
                total += len(chunks)
        return total

    def index(self, records: Sequence[DocumentRecord]) -> IndexStats:
        stats = IndexStats()
        for record in records:
            try:
                count = self.index_record(record)
            except Exception as exc:
                LOGGER.error("Failed to index %s: %s", record.display_name, exc)
                stats.increment("failed")
                stats.failures.append(ItemFailure(record.id, "index", str(exc)))
                continue
            if count:
                LOGGER.info("Indexed %s (%d chunks)", record.display_name, count)
                stats.increment("indexed", count)
            else:
                LOGGER.warning("No text extracted from %s", record.display_name)
                stats.increment("skipped")
        return stats
