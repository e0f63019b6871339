"""Chunked semantic index over library documents."""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from docshelf.config import AppConfig
from docshelf.embedding.encoder import EmbeddingProvider
from docshelf.index.storage import LibraryStore
from docshelf.models import Chunk
from docshelf.utils.text import chunk_words
from docshelf.utils.vectors import cosine_similarity

LOGGER = logging.getLogger(__name__)


class SemanticIndex:
    """Stores embedded word windows and ranks them against queries.

    Retrieval is embedding-only: without a query vector nothing is returned.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: LibraryStore,
        config: AppConfig | None = None,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.config = config or AppConfig()

    def index_document(
        self,
        text: str,
        source_id: str,
        page_index: int,
        *,
        source_name: str | None = None,
        window_size: int | None = None,
        overlap: int | None = None,
    ) -> List[Chunk]:
        """Chunk, embed and persist one page of a document."""
        size = window_size or self.config.index_window
        windows = chunk_words(
            text,
            window_size=size,
            overlap=min(self.config.index_overlap if overlap is None else overlap, size - 1),
        )
        chunks = [
            Chunk(
                document_id=source_id,
                text=window,
                page_index=page_index,
                chunk_index=chunk_index,
                source_name=source_name or source_id,
                embedding=self.embedder.embed(window),
            )
            for chunk_index, window in enumerate(windows)
        ]
        if chunks:
            self.store.insert_chunks(chunks)
        missing = sum(1 for chunk in chunks if chunk.embedding is None)
        if missing:
            LOGGER.debug("%d of %d chunks of %s stored without embedding", missing, len(chunks), source_id)
        return chunks

    def remove_document(self, source_id: str) -> int:
        return self.store.delete_chunks(source_id)

    def clear(self) -> None:
        self.store.clear_chunks()

    def rank(
        self, query: str, limit: int = 5, scope: Iterable[str] | None = None
    ) -> List[Tuple[Chunk, float]]:
        """Score candidate chunks against the query, best first."""
        query_vector = self.embedder.embed(query)
        if query_vector is None:
            LOGGER.info("Query embedding unavailable, returning no results")
            return []

        candidates = self.store.list_chunks(scope)
        scored = [(chunk, cosine_similarity(query_vector, chunk.embedding)) for chunk in candidates]
        # stable: equal scores keep insertion order
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[: max(limit, 0)]

    def retrieve(
        self, query: str, limit: int = 5, scope: Iterable[str] | None = None
    ) -> List[Chunk]:
        return [chunk for chunk, _ in self.rank(query, limit, scope)]

    def _comparison_vectors(self, text: str, window_size: int) -> list:
        windows = chunk_words(
            text,
            window_size=window_size,
            overlap=min(self.config.compare_overlap, window_size - 1),
            min_chars=self.config.compare_min_chars,
        )
        vectors = []
        for window in windows:
            if len(vectors) >= self.config.compare_max_chunks:
                break
            vectors.append(self.embedder.embed(window))
        return vectors

    def compare_documents(self, text_a: str, text_b: str, window_size: int | None = None) -> float:
        """Share of A's leading chunks that have a close match among B's.

        The score is relative to A: swapping the arguments changes the
        denominator.
        """
        size = window_size or self.config.compare_window
        vectors_a = self._comparison_vectors(text_a, size)
        if not vectors_a:
            return 0.0
        vectors_b = self._comparison_vectors(text_b, size)

        matched = 0
        for vector_a in vectors_a:
            best = max((cosine_similarity(vector_a, vector_b) for vector_b in vectors_b), default=0.0)
            if best > self.config.compare_match_threshold:
                matched += 1
        return matched / len(vectors_a)
