"""Tests for vector similarity scoring."""

import math

import pytest

from learnhub.core.similarity import (
    EmbeddingModelMismatchError,
    VectorDimensionError,
    cosine_similarity,
    ensure_same_model,
    rank_by_similarity,
)


@pytest.mark.parametrize("vector", [[1.0, 2.0, 3.0], [-0.5, 0.25, 8.0], [1e-6, 3.0]])
def test_self_similarity_is_one(vector):
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_similarity_is_symmetric():
    a = [0.3, -1.2, 4.0, 0.0]
    b = [2.0, 0.5, -1.0, 3.3]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_opposite_vectors():
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_zero_vector_scores_zero():
    score = cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0])
    assert score == 0.0
    assert not math.isnan(score)


def test_length_mismatch_raises():
    with pytest.raises(VectorDimensionError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_empty_vectors_raise():
    with pytest.raises(VectorDimensionError):
        cosine_similarity([], [])


def test_rank_by_similarity_scores_in_candidate_order():
    scores = rank_by_similarity(
        [1.0, 0.0],
        [[0.0, 1.0], [1.0, 0.0], [0.0, 0.0], [1.0, 1.0]],
    )
    assert scores[0] == pytest.approx(0.0)
    assert scores[1] == pytest.approx(1.0)
    assert scores[2] == 0.0
    assert scores[3] == pytest.approx(1 / math.sqrt(2))


def test_rank_by_similarity_empty_candidates():
    assert rank_by_similarity([1.0, 0.0], []) == []


def test_rank_by_similarity_rejects_ragged_candidates():
    with pytest.raises(VectorDimensionError):
        rank_by_similarity([1.0, 0.0], [[1.0, 0.0], [1.0, 0.0, 0.0]])


def test_rank_by_similarity_rejects_wrong_width():
    with pytest.raises(VectorDimensionError):
        rank_by_similarity([1.0, 0.0], [[1.0, 0.0, 0.0]])


def test_ensure_same_model():
    ensure_same_model("text-embedding-3-small", "text-embedding-3-small")

    with pytest.raises(EmbeddingModelMismatchError) as exc_info:
        ensure_same_model("text-embedding-3-small", "text-embedding-ada-002")
    assert exc_info.value.actual == "text-embedding-ada-002"

    with pytest.raises(EmbeddingModelMismatchError):
        ensure_same_model("text-embedding-3-small", None)
