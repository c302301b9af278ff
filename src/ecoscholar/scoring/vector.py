"""Cosine similarity between embeddings."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Return the cosine similarity of ``a`` and ``b``.

    Absent or empty embeddings, mismatched dimensions and zero-magnitude
    vectors all yield ``0.0`` rather than an exception, so a failed
    embedding only ever shows up as a zero score.
    """
    if a is None or b is None or len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0
    sim = float(np.dot(va, vb)) / norm
    return float(np.clip(sim, -1.0, 1.0))
