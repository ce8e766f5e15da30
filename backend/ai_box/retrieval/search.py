"""Knowledge base search orchestration."""

from __future__ import annotations

import time
from dataclasses import dataclass

from ai_box.core.config import Settings
from ai_box.core.errors import ParseError, UnsupportedInputError
from ai_box.core.logging import get_logger
from ai_box.core.metrics import SEARCH_LATENCY
from ai_box.db.store import Store
from ai_box.ingest.embeddings import generate_embeddings
from ai_box.ingest.pipeline import require_embedding_config
from ai_box.retrieval.similarity import search_similar

logger = get_logger(__name__)


@dataclass(slots=True)
class ChunkHit:
    id: str
    document_id: str
    content: str
    chunk_index: int
    score: float


class QueryService:
    """Embeds the query and ranks every stored chunk vector against it."""

    def __init__(self, store: Store, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    def search(self, query: str, top_k: int | None = None) -> list[ChunkHit]:
        query = query.strip()
        if not query:
            raise UnsupportedInputError("Search query is empty")
        limit = top_k if top_k is not None else self.settings.search_top_k
        config = require_embedding_config(self.store, self.settings)

        start_time = time.perf_counter()
        vectors = generate_embeddings(
            config,
            [query],
            self.settings.embedding_model,
            timeout=self.settings.request_timeout,
        )
        if not vectors:
            raise ParseError("Failed to generate query embedding")

        chunks = self.store.embedded_chunks()
        ranked = search_similar(vectors[0], [(chunk.id, chunk.embedding or []) for chunk in chunks], limit)
        by_id = {chunk.id: chunk for chunk in chunks}
        hits = [
            ChunkHit(
                id=chunk_id,
                document_id=by_id[chunk_id].document_id,
                content=by_id[chunk_id].content,
                chunk_index=by_id[chunk_id].chunk_index,
                score=score,
            )
            for chunk_id, score in ranked
        ]
        SEARCH_LATENCY.observe(time.perf_counter() - start_time)
        logger.info("Search scanned %d chunks, returned %d", len(chunks), len(hits))
        return hits


__all__ = ["QueryService", "ChunkHit"]
