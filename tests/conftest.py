"""Shared fixtures and test doubles."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List

import numpy as np
import pytest

from docshelf.config import AppConfig
from docshelf.index.storage import LibraryStore
from docshelf.ingestion.byte_store import LibraryFileStore
from docshelf.library import LibraryService
from docshelf.models import DocumentRecord

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class BagOfWordsEmbedder:
    """Deterministic embedder: one dimension per distinct lower-cased word."""

    def __init__(self, dimension: int = 4096, available: bool = True) -> None:
        self.dimension = dimension
        self.available = available
        self.vocabulary: Dict[str, int] = {}
        self.calls: List[str] = []

    def embed(self, text: str) -> np.ndarray | None:
        self.calls.append(text)
        if not self.available:
            return None
        vector = np.zeros(self.dimension, dtype="float32")
        for word in text.lower().split():
            slot = self.vocabulary.setdefault(word, len(self.vocabulary) % self.dimension)
            vector[slot] += 1.0
        return vector


class FakeExtractor:
    """Serves page texts from a mapping keyed by file name.

    With ``read_files`` set, unknown files are read as text and split into
    pages on form feeds.
    """

    def __init__(self, pages: Dict[str, List[str]] | None = None, *, read_files: bool = False) -> None:
        self.pages = pages or {}
        self.read_files = read_files
        self.calls: List[tuple] = []

    def iter_pages(self, path: Path, max_pages: int | None = None) -> Iterator[str]:
        path = Path(path)
        pages = self.pages.get(path.name)
        if pages is None:
            pages = []
            if self.read_files and path.exists():
                pages = path.read_text(errors="ignore").split("\f")
        yield from (pages if max_pages is None else pages[:max_pages])

    def extract_text(self, path: Path, max_pages: int | None = None) -> str:
        self.calls.append((Path(path).name, max_pages))
        return "\n".join(page for page in self.iter_pages(path, max_pages) if page)


def make_record(
    tmp_path: Path,
    name: str,
    content: bytes = b"%PDF-1.4 sample",
    *,
    minutes: int = 0,
    **fields,
) -> DocumentRecord:
    """Write a file under tmp_path and build a record pointing at it."""
    path = tmp_path / name
    path.write_bytes(content)
    fields.setdefault("file_size", len(content))
    return DocumentRecord(
        file_path=path,
        original_filename=name,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **fields,
    )


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LibraryStore]:
    db = LibraryStore(tmp_path / "library.db")
    yield db
    db.close()


@pytest.fixture
def embedder() -> BagOfWordsEmbedder:
    return BagOfWordsEmbedder()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(db_path=tmp_path / "library.db", library_dir=tmp_path / "files")


@pytest.fixture
def service(tmp_path: Path, store: LibraryStore, embedder: BagOfWordsEmbedder, config: AppConfig) -> LibraryService:
    return LibraryService(
        store,
        LibraryFileStore(tmp_path / "files"),
        embedder,
        primary=FakeExtractor(read_files=True),
        fallback=FakeExtractor(),
        classifier=None,
        config=config,
    )
