"""Tests for retrieval utilities."""

import pytest

from ai_box.retrieval.similarity import cosine_similarity, search_similar


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ([1.0, 0.0], [2.0, 0.0], 1.0),
        ([1.0, 0.0], [0.0, 3.0], 0.0),
        ([1.0, 1.0], [-1.0, -1.0], -1.0),
        ([1.0, 0.0], [1.0, 0.0, 0.0], 0.0),
        ([0.0, 0.0], [1.0, 1.0], 0.0),
        ([], [], 0.0),
    ],
)
def test_cosine_similarity(a: list[float], b: list[float], expected: float) -> None:
    assert cosine_similarity(a, b) == pytest.approx(expected)


def test_search_ranks_descending_and_truncates() -> None:
    candidates = [
        ("far", [0.0, 1.0]),
        ("near", [1.0, 0.1]),
        ("exact", [1.0, 0.0]),
    ]
    results = search_similar([1.0, 0.0], candidates, top_k=2)
    assert [identifier for identifier, _ in results] == ["exact", "near"]
    assert results[0][1] == pytest.approx(1.0)


def test_equal_scores_keep_input_order() -> None:
    candidates = [("b", [1.0, 0.0]), ("a", [2.0, 0.0]), ("c", [3.0, 0.0])]
    assert [identifier for identifier, _ in search_similar([1.0, 0.0], candidates, top_k=3)] == ["b", "a", "c"]


def test_non_positive_top_k_returns_nothing() -> None:
    assert search_similar([1.0], [("a", [1.0])], top_k=0) == []
