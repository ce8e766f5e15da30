"""Cosine scoring and top-k ranking over stored vectors."""

from __future__ import annotations

import math
from typing import Iterable, Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Empty, length-mismatched or zero-norm inputs score ``0.0`` so that vectors
    from a different embedding model rank low instead of failing the search.
    """
    if not a or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    # Rounding can push |cos| a hair past 1.
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def search_similar(
    query: Sequence[float],
    candidates: Iterable[tuple[str, Sequence[float]]],
    top_k: int,
) -> list[tuple[str, float]]:
    """Rank ``(id, vector)`` candidates by descending cosine score.

    Python's sort is stable, so equal scores keep input order.
    """
    if top_k <= 0:
        return []
    scored = [(identifier, cosine_similarity(query, vector)) for identifier, vector in candidates]
    scored.sort(key=lambda item: item[1], reverse=True)
    return scored[:top_k]


__all__ = ["cosine_similarity", "search_similar"]
