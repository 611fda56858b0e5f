"""Vector similarity arithmetic."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

#: Score returned when two vectors cannot be compared. It loses against
#: every real cosine similarity.
SENTINEL_SCORE = -1.0


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of *a* and *b* in ``[-1, 1]``.

    Empty vectors, mismatched dimensions and zero-norm vectors yield
    :data:`SENTINEL_SCORE` instead of raising; an empty document is
    stored with an empty vector and is compared against real queries.
    """
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.ndim != 1 or vb.ndim != 1 or va.size == 0 or vb.size == 0 or va.size != vb.size:
        return SENTINEL_SCORE
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0:
        return SENTINEL_SCORE
    score = float(np.dot(va, vb)) / norm
    return max(-1.0, min(1.0, score))
