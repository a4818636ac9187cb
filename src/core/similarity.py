# src/core/similarity.py - v3
"""Cosine similarity scoring for memory search.

Scores are rescaled from [-1, 1] to [0, 1] as ``(1 + cos) / 2`` so that
higher means more similar and every score is a valid relevance value.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def cosine_scores(query: list[float], embeddings: list[list[float]]) -> np.ndarray:
    """Relevance of each embedding to the query, in [0, 1].

    Args:
        query: Query vector.
        embeddings: Candidate vectors, all the same dimension as ``query``.

    Returns:
        1D array of scores aligned with ``embeddings``.

    Raises:
        ValueError: If dimensions do not match.
    """
    if not embeddings:
        return np.empty(0, dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(embeddings, dtype=np.float64)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        raise ValueError(
            f"Dimension mismatch: query has {q.shape[0]}, candidates have shape {m.shape}"
        )

    q_norm = max(float(np.linalg.norm(q)), 1e-10)
    m_norms = np.maximum(np.linalg.norm(m, axis=1), 1e-10)
    cos = (m @ q) / (m_norms * q_norm)
    return np.clip((1.0 + cos) / 2.0, 0.0, 1.0)


def top_k_indices(scores: np.ndarray, k: int) -> list[int]:
    """Indices of the ``k`` best scores, best first (stable on ties)."""
    if k <= 0 or scores.size == 0:
        return []
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:k]]
