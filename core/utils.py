import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)


def similarity_from_cosine_distance(distance: float) -> float:
    """Convert a cosine distance to a similarity score in [0, 1].

    Cosine distance ranges over [0, 2] (distance = 1 - cosine), so the score
    is (cosine + 1) / 2. Both vector index backends report this score.

    Args:
        distance: Cosine distance, e.g. from pgvector cosine_distance

    Returns:
        Similarity in range [0, 1]
    """
    similarity = 1.0 - float(distance) / 2.0
    if not (0.0 <= similarity <= 1.0):
        logger.error(f"Similarity out of range: {similarity}, clipping to [0, 1]")
        return max(0.0, min(1.0, similarity))
    return similarity


def cosine_distances(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine distance between a query vector and each row of matrix.

    Zero-norm rows (or a zero query) get distance 1.0, i.e. similarity 0.5.
    """
    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = row_norms * q_norm
    cosines = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denom > 0
    cosines[nonzero] = (matrix[nonzero] @ q) / denom[nonzero]
    return 1.0 - np.clip(cosines, -1.0, 1.0)
