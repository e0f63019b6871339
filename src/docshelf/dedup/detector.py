"""Four-tier duplicate detection over the whole library.

Tiers run in a fixed order and share a set of processed ids, so a record
is proposed for deletion at most once per scan:

1. Exact Match   - identical content fingerprint of the stored bytes
2. Content Match - identical normalized text preview
3. Smart Match   - identical inferred title within the same size bucket
4. Similar       - close inferred titles (embedding distance or edit similarity)

The first three tiers keep the oldest record of each group. The fourth
pairs each straggler with its best-matching title.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Sequence, Set

import numpy as np

from docshelf.config import DuplicateThresholds
from docshelf.embedding.encoder import EmbeddingProvider
from docshelf.index.storage import LibraryStore
from docshelf.models import DocumentRecord, DuplicateGroup, ItemFailure, ScanResult
from docshelf.utils.files import content_fingerprint
from docshelf.utils.text import content_key, edit_similarity
from docshelf.utils.vectors import cosine_similarity

LOGGER = logging.getLogger(__name__)

EXACT = "Exact Match"
CONTENT = "Content Match"
SMART = "Smart Match"
SIMILAR = "Similar"


class _ScanState:
    """Bookkeeping shared by the tiers of a single scan."""

    def __init__(self) -> None:
        self.processed: Set[str] = set()
        self.highlight: Set[str] = set()
        self.to_delete: List[DocumentRecord] = []
        self.groups: List[DuplicateGroup] = []

    def add_keeper_group(self, tier: str, members: Sequence[DocumentRecord]) -> None:
        ordered = sorted(members, key=lambda record: record.created_at)
        keeper, copies = ordered[0], ordered[1:]
        self.to_delete.extend(copies)
        for record in ordered:
            self.processed.add(record.id)
            self.highlight.add(record.id)
        label = keeper.title or keeper.original_filename
        self.groups.append(
            DuplicateGroup(
                tier=tier,
                ids=[record.id for record in members],
                keeper_id=keeper.id,
                delete_ids=[record.id for record in copies],
                summary=f'- [{tier}] "{label}" has {len(copies)} copies',
            )
        )

    def add_pair(self, match: DocumentRecord, source: DocumentRecord) -> None:
        self.to_delete.append(source)
        for record in (match, source):
            self.processed.add(record.id)
            self.highlight.add(record.id)
        self.groups.append(
            DuplicateGroup(
                tier=SIMILAR,
                ids=[match.id, source.id],
                keeper_id=match.id,
                delete_ids=[source.id],
                summary=f'- [{SIMILAR}] "{source.title}" ~ "{match.title}"',
            )
        )


class DuplicateDetector:
    """Partitions the library into duplicate groups and a keep set.

    Scans are never incremental: fingerprints and groups are rebuilt from
    the current records every time.
    """

    def __init__(
        self,
        store: LibraryStore,
        embedder: EmbeddingProvider | None = None,
        thresholds: DuplicateThresholds | None = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.thresholds = thresholds or DuplicateThresholds()

    def scan(self) -> ScanResult:
        """Run all tiers and build the report.

        The store lock is held for the whole scan so no other writer can
        change the record set mid-way.
        """
        with self.store.lock:
            records = self.store.list_documents()
            failures = self._refresh_hashes(records)
            state = _ScanState()

            self._group_exact(records, state)
            self._group_content(records, state)
            if self.thresholds.title_size_tier:
                self._group_title_size(records, state)
            self._match_titles(records, state)

        lines = [f"Scanned {len(records)} files. Found {len(state.groups)} groups."]
        lines.extend(group.summary for group in state.groups)
        LOGGER.info(
            "Duplicate scan: %d files, %d groups, %d delete candidates",
            len(records),
            len(state.groups),
            len(state.to_delete),
        )
        return ScanResult(
            count=len(state.to_delete),
            report="\n".join(lines),
            duplicates=state.to_delete,
            highlight_ids=state.highlight,
            groups=[group.ids for group in state.groups],
            group_details=state.groups,
            failures=failures,
        )

    def clean(self, delete: Callable[[DocumentRecord], bool]) -> int:
        """Re-scan and delete every candidate. Returns the number deleted."""
        with self.store.lock:
            result = self.scan()
            deleted = 0
            for record in result.duplicates:
                if delete(record):
                    deleted += 1
        LOGGER.info("Removed %d of %d duplicates", deleted, result.count)
        return deleted

    # -- tiers ---------------------------------------------------------

    def _refresh_hashes(self, records: Sequence[DocumentRecord]) -> List[ItemFailure]:
        failures: List[ItemFailure] = []
        changed: Dict[str, str] = {}
        for record in records:
            fingerprint = content_fingerprint(record.file_path)
            if fingerprint is None:
                failures.append(ItemFailure(record.id, "fingerprint", f"unreadable: {record.file_path}"))
                continue
            if fingerprint != record.file_hash:
                record.file_hash = fingerprint
                changed[record.id] = fingerprint
        if changed:
            self.store.update_hashes(changed)
            LOGGER.info("Updated hashes for %d files", len(changed))
        return failures

    def _group_exact(self, records: Sequence[DocumentRecord], state: _ScanState) -> None:
        by_hash: Dict[str, List[DocumentRecord]] = defaultdict(list)
        for record in records:
            if record.file_hash:
                by_hash[record.file_hash].append(record)
        for members in by_hash.values():
            if len(members) > 1:
                state.add_keeper_group(EXACT, members)

    def _group_content(self, records: Sequence[DocumentRecord], state: _ScanState) -> None:
        by_key: Dict[str, List[DocumentRecord]] = defaultdict(list)
        for record in records:
            if record.id in state.processed:
                continue
            key = content_key(
                record.text_preview,
                max_chars=self.thresholds.content_chars,
                min_chars=self.thresholds.min_content_chars,
            )
            if key is not None:
                by_key[key].append(record)
        for members in by_key.values():
            if len(members) > 1:
                state.add_keeper_group(CONTENT, members)

    def _group_title_size(self, records: Sequence[DocumentRecord], state: _ScanState) -> None:
        by_title: Dict[str, List[DocumentRecord]] = defaultdict(list)
        for record in records:
            if record.id not in state.processed and record.title:
                by_title[record.title].append(record)
        for members in by_title.values():
            if len(members) < 2:
                continue
            by_bucket: Dict[int, List[DocumentRecord]] = defaultdict(list)
            for record in members:
                by_bucket[record.file_size // self.thresholds.size_bucket_bytes].append(record)
            for bucket in by_bucket.values():
                if len(bucket) > 1:
                    state.add_keeper_group(SMART, bucket)

    def _match_titles(self, records: Sequence[DocumentRecord], state: _ScanState) -> None:
        leftovers = [record for record in records if record.id not in state.processed]
        visited: Set[str] = set()
        vectors: Dict[str, np.ndarray | None] = {}
        use_vectors = self.embedder is not None and self.embedder.available
        if not use_vectors:
            LOGGER.info("Title embeddings unavailable, matching titles by edit similarity")

        def title_vector(title: str) -> np.ndarray | None:
            if not use_vectors:
                return None
            if title not in vectors:
                vectors[title] = self.embedder.embed(title)
            return vectors[title]

        for source in leftovers:
            if source.id in visited or not source.title:
                continue
            source_title = source.title
            best: DocumentRecord | None = None
            best_distance = 1.0
            best_similarity = 0.0

            for candidate in records:
                if candidate.id == source.id or candidate.id in visited or not candidate.title:
                    continue
                if candidate.title.lower() == source_title.lower():
                    best = candidate
                    break

                source_vector = title_vector(source_title)
                candidate_vector = title_vector(candidate.title)
                similarity = edit_similarity(source_title, candidate.title)
                if source_vector is not None and candidate_vector is not None:
                    distance = 1.0 - cosine_similarity(source_vector, candidate_vector)
                    if distance < self.thresholds.title_distance and distance < best_distance:
                        best = candidate
                        best_distance = distance
                        continue
                if similarity > self.thresholds.title_edit_similarity and similarity > best_similarity:
                    best = candidate
                    best_similarity = similarity

            if best is not None:
                visited.add(source.id)
                visited.add(best.id)
                state.add_pair(best, source)
