"""Vector similarity scoring."""

from typing import Sequence

import numpy as np


class VectorDimensionError(ValueError):
    """Vectors cannot be compared because their shapes disagree."""


class EmbeddingModelMismatchError(ValueError):
    """Vectors were produced by different embedding models."""

    def __init__(self, expected: str | None, actual: str | None):
        super().__init__(f"Embedding model mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


def ensure_same_model(expected: str | None, actual: str | None) -> None:
    """Raise unless both vectors carry the same embedding model stamp."""
    if not expected or not actual or expected != actual:
        raise EmbeddingModelMismatchError(expected, actual)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors of equal length.

    A zero vector has no direction; its similarity to anything is 0.0.

    Raises:
        VectorDimensionError: Lengths differ or a vector is empty
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)

    if vec_a.ndim != 1 or vec_b.ndim != 1 or vec_a.size == 0:
        raise VectorDimensionError("Expected two non-empty one-dimensional vectors")
    if vec_a.shape != vec_b.shape:
        raise VectorDimensionError(f"Vector length mismatch: {vec_a.size} != {vec_b.size}")

    norm = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if norm == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / norm)


def rank_by_similarity(
    query: Sequence[float],
    candidates: Sequence[Sequence[float]],
) -> list[float]:
    """Score every candidate against the query in one pass.

    Returns:
        Similarities in candidate order
    """
    if not candidates:
        return []

    query_vec = np.asarray(query, dtype=float)
    try:
        matrix = np.asarray(candidates, dtype=float)
    except ValueError as e:
        # ragged input
        raise VectorDimensionError(f"Candidate vectors differ in length: {e}") from e

    if query_vec.ndim != 1 or query_vec.size == 0:
        raise VectorDimensionError("Query must be a non-empty one-dimensional vector")
    if matrix.ndim != 2 or matrix.shape[1] != query_vec.size:
        raise VectorDimensionError(
            f"Candidate vectors must all have length {query_vec.size}"
        )

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
    dots = matrix @ query_vec
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms == 0, 0.0, dots / norms)

    return [float(s) for s in scores]
