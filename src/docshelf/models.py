"""Core DocShelf data models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Set

import numpy as np


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class ProcessingStatus(str, Enum):
    """Lifecycle of a document inside the processing pipeline."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    DONE = "done"
    ERROR = "error"


@dataclass(slots=True)
class DocumentRecord:
    """A document owned by the library.

    ``id`` never changes once assigned. ``file_hash`` is the content
    fingerprint of the stored bytes and may be refreshed by a duplicate scan.
    """

    file_path: Path
    original_filename: str
    file_size: int
    file_hash: Optional[str] = None
    id: str = field(default_factory=new_id)
    status: ProcessingStatus = ProcessingStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    title: Optional[str] = None
    category: Optional[str] = None
    emoji: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    confidence: float = 0.0
    text_preview: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.title or self.original_filename

    @property
    def display_emoji(self) -> str:
        return self.emoji or "📄"


@dataclass(slots=True)
class Chunk:
    """Window of document text paired with its embedding.

    ``embedding`` is ``None`` when no embedding provider was available at
    indexing time.
    """

    document_id: str
    text: str
    page_index: int
    chunk_index: int
    source_name: str = ""
    embedding: Optional[np.ndarray] = None
    id: str = field(default_factory=new_id)


@dataclass(slots=True)
class Classification:
    title: str
    category: str
    emoji: str
    tags: List[str]
    confidence: float


@dataclass(slots=True)
class ItemFailure:
    """A single item that could not be handled during a larger operation."""

    item_id: str
    operation: str
    reason: str


@dataclass(slots=True)
class OperationResult:
    ok: bool
    reason: Optional[str] = None
    value: Any = None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "OperationResult":
        return cls(ok=False, reason=reason)


@dataclass(slots=True)
class DuplicateGroup:
    """Records believed to hold the same content.

    ``ids`` keeps discovery order. ``keeper_id`` is retained while every id
    in ``delete_ids`` is a candidate for removal.
    """

    tier: str
    ids: List[str]
    keeper_id: str
    delete_ids: List[str]
    summary: str


@dataclass(slots=True)
class ScanResult:
    count: int
    report: str
    duplicates: List[DocumentRecord]
    highlight_ids: Set[str]
    groups: List[List[str]]
    group_details: List[DuplicateGroup] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)


@dataclass(slots=True)
class BatchResult:
    total: int = 0
    done: int = 0
    errors: int = 0
    cancelled: bool = False
    progress: float = 0.0
    remaining_ids: List[str] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)
