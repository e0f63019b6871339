"""Semantic search interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from docshelf.index.semantic import SemanticIndex
from docshelf.index.storage import LibraryStore


@dataclass(slots=True)
class SearchResult:
    document_id: str
    title: str
    page_index: int
    chunk_index: int
    score: float
    text: str


class Searcher:
    """High-level API joining ranked chunks with their documents."""

    def __init__(self, index: SemanticIndex, store: LibraryStore) -> None:
        self.index = index
        self.store = store

    def search(
        self, query: str, *, top_k: int = 10, scope: Iterable[str] | None = None
    ) -> List[SearchResult]:
        ranked = self.index.rank(query, limit=top_k, scope=scope)
        titles: dict[str, str] = {}
        results: List[SearchResult] = []
        for chunk, score in ranked:
            if chunk.document_id not in titles:
                record = self.store.get_document(chunk.document_id)
                titles[chunk.document_id] = record.display_name if record else chunk.source_name
            results.append(
                SearchResult(
                    document_id=chunk.document_id,
                    title=titles[chunk.document_id],
                    page_index=chunk.page_index,
                    chunk_index=chunk.chunk_index,
                    score=float(score),
                    text=chunk.text,
                )
            )
        return results
