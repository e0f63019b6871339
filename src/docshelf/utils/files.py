"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import io
import logging
import struct
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

LOGGER = logging.getLogger(__name__)

FINGERPRINT_BLOCK = 4096

_MAX_TITLE_CHARS = 50


def iter_pdf_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield PDF paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_pdf_paths(sorted(child for child in item.rglob("*.pdf")))
        elif item.is_file() and item.suffix.lower() == ".pdf":
            yield item


def _fingerprint_stream(handle: BinaryIO) -> str:
    head = handle.read(FINGERPRINT_BLOCK)
    length = handle.seek(0, io.SEEK_END)
    tail = b""
    if length > FINGERPRINT_BLOCK:
        handle.seek(length - FINGERPRINT_BLOCK)
        tail = handle.read(FINGERPRINT_BLOCK)

    sha = hashlib.sha256()
    sha.update(head)
    sha.update(tail)
    sha.update(struct.pack("<Q", length))
    return sha.hexdigest()


def content_fingerprint(source: Path | BinaryIO) -> str | None:
    """Fingerprint the head, tail and length of a file.

    Only the first and last 4 KiB are read, so files that differ solely in
    the middle and have the same size collide. Returns ``None`` when the
    source cannot be read.
    """
    try:
        if isinstance(source, (str, Path)):
            with Path(source).open("rb") as handle:
                return _fingerprint_stream(handle)
        source.seek(0)
        return _fingerprint_stream(source)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Could not fingerprint %s: %s", source, exc)
        return None


def sanitize_filename(title: str) -> str:
    """Turn an inferred title into a filesystem-safe file stem."""
    cleaned = title.replace("/", "-").replace(":", "-").replace("\\", "")
    cleaned = "".join(ch for ch in cleaned if ch.isprintable())
    return cleaned[:_MAX_TITLE_CHARS].strip()
