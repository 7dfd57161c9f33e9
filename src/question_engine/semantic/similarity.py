from __future__ import annotations

from typing import Sequence

import numpy as np


def _as_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    return np.asarray(vectors, dtype="float64")


def _normalise(m: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(m, axis=1, keepdims=True)
    # zero vectors stay zero and therefore have similarity 0 to everything
    safe = np.where(norms == 0.0, 1.0, norms)
    return m / safe


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Vectors must have the same length")
    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


def similarity_matrix(
    rows: Sequence[Sequence[float]], cols: Sequence[Sequence[float]] | None = None
) -> np.ndarray:
    """Pairwise cosine similarity; ``cols`` defaults to ``rows``."""
    if len(rows) == 0:
        return np.zeros((0, len(cols) if cols is not None else 0))
    a = _normalise(_as_matrix(rows))
    b = a if cols is None else _normalise(_as_matrix(cols))
    if b.shape[0] == 0:
        return np.zeros((a.shape[0], 0))
    return a @ b.T


def similarities(target: Sequence[float], others: Sequence[Sequence[float]]) -> list[float]:
    if not others:
        return []
    return [float(x) for x in similarity_matrix([target], others)[0]]


def max_similarity(target: Sequence[float], others: Sequence[Sequence[float]]) -> float:
    """Largest similarity to ``others``; 0.0 when there is nothing to compare."""
    return max(similarities(target, others), default=0.0)


def dedupe_indices(vectors: Sequence[Sequence[float]], threshold: float) -> list[int]:
    """Greedy, order-preserving near-duplicate removal.

    An item is kept only if its similarity to every previously kept item is
    strictly below ``threshold``.
    """
    if len(vectors) == 0:
        return []
    sim = similarity_matrix(vectors)
    kept: list[int] = []
    for i in range(len(vectors)):
        if all(sim[i, j] < threshold for j in kept):
            kept.append(i)
    return kept


def cluster_indices(vectors: Sequence[Sequence[float]], threshold: float) -> list[list[int]]:
    """Greedy grouping: each unassigned item seeds a cluster of later unassigned items
    whose similarity to the seed is at least ``threshold``."""
    n = len(vectors)
    if n == 0:
        return []
    sim = similarity_matrix(vectors)
    assigned: set[int] = set()
    clusters: list[list[int]] = []
    for i in range(n):
        if i in assigned:
            continue
        cluster = [i]
        assigned.add(i)
        for j in range(i + 1, n):
            if j not in assigned and sim[i, j] >= threshold:
                cluster.append(j)
                assigned.add(j)
        clusters.append(cluster)
    return clusters
