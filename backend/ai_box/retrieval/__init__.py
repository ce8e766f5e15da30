"""Retrieval orchestration components."""

from .search import ChunkHit, QueryService
from .similarity import cosine_similarity, search_similar

__all__ = [
    "ChunkHit",
    "QueryService",
    "cosine_similarity",
    "search_similar",
]
