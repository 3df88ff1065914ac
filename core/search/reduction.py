# Path: core/search/reduction.py
# Purpose: Compress a probe set into the number of positives a recommend query accepts.
# Layer: core/search.
# Details: Contiguous chunks of the ordered vector list are replaced by their mean.

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np

from core.vector_store.base import MAX_POSITIVE_EXAMPLES


def reduction_chunk_size(count: int, cap: int = MAX_POSITIVE_EXAMPLES) -> int:
    """Chunk width used when ``count`` vectors exceed ``cap``.

    The extra ``+ 1`` keeps the result safely under the cap; for counts just above it
    the reduced set is noticeably smaller than ``cap``.
    """

    return 1 + math.ceil(count / cap)


def reduce_vectors(vectors: Sequence[np.ndarray], cap: int = MAX_POSITIVE_EXAMPLES) -> List[np.ndarray]:
    """Return at most ``cap`` representative vectors for an ordered probe set.

    Up to ``cap`` vectors are returned unchanged. Larger sets are split into
    contiguous chunks of :func:`reduction_chunk_size` and each chunk is averaged
    componentwise.
    """

    if not vectors:
        raise ValueError("Cannot reduce an empty vector set.")
    if cap < 1:
        raise ValueError("cap must be positive.")
    if len(vectors) <= cap:
        return list(vectors)

    chunk_size = reduction_chunk_size(len(vectors), cap)
    matrix = np.vstack([np.asarray(vector, dtype=np.float32) for vector in vectors])
    return [matrix[start : start + chunk_size].mean(axis=0) for start in range(0, len(vectors), chunk_size)]
