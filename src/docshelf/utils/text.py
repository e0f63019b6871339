"""Text helpers: word-window chunking, normalization and string similarity."""

from __future__ import annotations

import hashlib
from typing import Iterable, Iterator


def chunk_words(
    text: str, *, window_size: int = 250, overlap: int = 50, min_chars: int = 0
) -> Iterator[str]:
    """Split text into overlapping windows of whitespace-separated words.

    Windows advance by ``window_size - overlap`` words and the last one may
    be shorter. Windows shorter than ``min_chars`` characters are dropped.
    """
    if window_size < 1:
        raise ValueError("window_size must be positive")
    if overlap < 0 or overlap >= window_size:
        raise ValueError("overlap must be in [0, window_size)")

    words = text.split()
    step = window_size - overlap
    for start in range(0, len(words), step):
        window = " ".join(words[start : start + window_size])
        if len(window) >= min_chars:
            yield window
        if start + window_size >= len(words):
            break


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def content_key(text: str | None, *, max_chars: int = 2000, min_chars: int = 100) -> str | None:
    """Hash of the whitespace-free, lower-cased head of a text preview.

    Returns ``None`` when the normalized text is too short to be trusted.
    """
    if not text:
        return None
    normalized = "".join(text[:max_chars].split()).lower()
    if len(normalized) < min_chars:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def levenshtein(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    """Edit distance normalized into [0, 1], 1.0 meaning identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest
