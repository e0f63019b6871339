"""Vector helpers."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarity(a: np.ndarray | Sequence[float] | None, b: np.ndarray | Sequence[float] | None) -> float:
    """Cosine similarity that returns 0.0 instead of raising.

    Missing vectors, vectors of different length and zero vectors all score 0.0.
    """
    if a is None or b is None:
        return 0.0
    va = np.asarray(a, dtype="float64").ravel()
    vb = np.asarray(b, dtype="float64").ravel()
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)
