"""SQLite persistence for library documents and their chunks."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Sequence

import numpy as np

from docshelf.models import Chunk, DocumentRecord, ProcessingStatus


def _encode_vector(vector: np.ndarray | None) -> bytes:
    if vector is None:
        return b""
    return np.asarray(vector, dtype="float32").tobytes()


def _decode_vector(blob: bytes | None) -> np.ndarray | None:
    if not blob:
        return None
    return np.frombuffer(blob, dtype="float32")


def _encode_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


_DOCUMENT_COLUMNS = (
    "id, file_path, original_filename, file_hash, file_size, status, created_at, "
    "title, category, emoji, tags, confidence, text_preview"
)


class LibraryStore:
    """Persistence layer for document records and chunk embeddings.

    Every write goes through :meth:`transaction`, which serializes writers on
    a re-entrant lock so a single connection can be shared across threads.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_schema()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._depth += 1
            try:
                yield self._conn
            except Exception:
                self._depth -= 1
                if self._depth == 0:
                    self._conn.rollback()
                raise
            self._depth -= 1
            if self._depth == 0:
                self._conn.commit()

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    file_path TEXT NOT NULL,
                    original_filename TEXT NOT NULL,
                    file_hash TEXT,
                    file_size INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    title TEXT,
                    category TEXT,
                    emoji TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    confidence REAL NOT NULL DEFAULT 0.0,
                    text_preview TEXT,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS documents_updated
                AFTER UPDATE ON documents
                BEGIN
                    UPDATE documents SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
                END;
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_file_hash ON documents(file_hash)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    page_index INTEGER NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    source_name TEXT NOT NULL DEFAULT '',
                    text TEXT NOT NULL,
                    embedding BLOB NOT NULL DEFAULT x'',
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(document_id) REFERENCES documents(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                    ON chunks(document_id)
                """
            )

    # -- documents -----------------------------------------------------

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> DocumentRecord:
        return DocumentRecord(
            id=row["id"],
            file_path=Path(row["file_path"]),
            original_filename=row["original_filename"],
            file_hash=row["file_hash"],
            file_size=int(row["file_size"]),
            status=ProcessingStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            title=row["title"],
            category=row["category"],
            emoji=row["emoji"],
            tags=json.loads(row["tags"] or "[]"),
            confidence=float(row["confidence"]),
            text_preview=row["text_preview"],
        )

    @staticmethod
    def _document_values(record: DocumentRecord) -> tuple:
        return (
            record.id,
            str(record.file_path),
            record.original_filename,
            record.file_hash,
            record.file_size,
            record.status.value,
            _encode_time(record.created_at),
            record.title,
            record.category,
            record.emoji,
            json.dumps(record.tags, ensure_ascii=False),
            float(record.confidence),
            record.text_preview,
        )

    def add_document(self, record: DocumentRecord) -> None:
        with self.transaction() as conn:
            conn.execute(
                f"INSERT INTO documents({_DOCUMENT_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._document_values(record),
            )

    def update_document(self, record: DocumentRecord) -> None:
        values = self._document_values(record)
        with self.transaction() as conn:
            conn.execute(
                """
                UPDATE documents SET
                    file_path = ?, original_filename = ?, file_hash = ?, file_size = ?,
                    status = ?, created_at = ?, title = ?, category = ?, emoji = ?,
                    tags = ?, confidence = ?, text_preview = ?
                WHERE id = ?
                """,
                (*values[1:], record.id),
            )

    def update_hashes(self, hashes: Mapping[str, str]) -> None:
        """Persist refreshed content fingerprints keyed by document id."""
        with self.transaction() as conn:
            conn.executemany(
                "UPDATE documents SET file_hash = ? WHERE id = ?",
                [(value, doc_id) for doc_id, value in hashes.items()],
            )

    def get_document(self, doc_id: str) -> DocumentRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (doc_id,)
            ).fetchone()
        return self._row_to_document(row) if row else None

    def list_documents(self, status: ProcessingStatus | None = None) -> List[DocumentRecord]:
        """Return documents ordered by creation time (oldest first)."""
        query = f"SELECT {_DOCUMENT_COLUMNS} FROM documents"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status.value,)
        query += " ORDER BY created_at, rowid"
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_document(row) for row in rows]

    def find_by_hash(self, file_hash: str) -> List[DocumentRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE file_hash = ? "
                "ORDER BY created_at, rowid",
                (file_hash,),
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def delete_document(self, doc_id: str) -> bool:
        """Delete a document and its chunks. Returns False if it did not exist."""
        with self.transaction() as conn:
            conn.execute("DELETE FROM chunks WHERE document_id = ?", (doc_id,))
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
        return cursor.rowcount > 0

    def remove_missing_files(self) -> List[str]:
        """Remove documents whose stored files no longer exist."""
        with self.transaction() as conn:
            rows = conn.execute("SELECT id, file_path FROM documents").fetchall()
            missing = [row["id"] for row in rows if not Path(row["file_path"]).exists()]
            for doc_id in missing:
                conn.execute("DELETE FROM chunks WHERE document_id = ?", (doc_id,))
                conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))
        return missing

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            documents = self._conn.execute(
                "SELECT COUNT(*) AS n, COALESCE(SUM(file_size), 0) AS size FROM documents"
            ).fetchone()
            chunks = self._conn.execute("SELECT COUNT(*) AS n FROM chunks").fetchone()
        return {
            "document_count": int(documents["n"]),
            "chunk_count": int(chunks["n"]),
            "total_size_bytes": int(documents["size"]),
        }

    # -- chunks --------------------------------------------------------

    def insert_chunks(self, chunks: Sequence[Chunk]) -> None:
        with self.transaction() as conn:
            conn.executemany(
                """
                INSERT INTO chunks(id, document_id, page_index, chunk_index, source_name, text, embedding)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        chunk.id,
                        chunk.document_id,
                        chunk.page_index,
                        chunk.chunk_index,
                        chunk.source_name,
                        chunk.text,
                        sqlite3.Binary(_encode_vector(chunk.embedding)),
                    )
                    for chunk in chunks
                ],
            )

    def delete_chunks(self, document_id: str) -> int:
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        return cursor.rowcount

    def clear_chunks(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM chunks")

    def list_chunks(self, document_ids: Iterable[str] | None = None) -> List[Chunk]:
        """Return chunks in insertion order, optionally limited to some documents."""
        query = (
            "SELECT id, document_id, page_index, chunk_index, source_name, text, embedding "
            "FROM chunks"
        )
        params: tuple = ()
        if document_ids is not None:
            ids = tuple(document_ids)
            if not ids:
                return []
            query += f" WHERE document_id IN ({', '.join('?' for _ in ids)})"
            params = ids
        query += " ORDER BY rowid"
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [
            Chunk(
                id=row["id"],
                document_id=row["document_id"],
                page_index=int(row["page_index"]),
                chunk_index=int(row["chunk_index"]),
                source_name=row["source_name"],
                text=row["text"],
                embedding=_decode_vector(row["embedding"]),
            )
            for row in rows
        ]
