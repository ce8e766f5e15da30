"""Embedding utilities."""

from __future__ import annotations

import sys
from array import array
from typing import Any, Iterator, Sequence

import requests

from ai_box.core.errors import AIBoxError, ConfigError, ParseError
from ai_box.core.logging import get_logger
from ai_box.core.metrics import EMBEDDING_BATCHES
from ai_box.llm.http import Timeout, bearer_headers, open_session, read_json, send
from ai_box.llm.types import OllamaConfig, OpenAIConfig

logger = get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
BATCH_SIZE = 20

_BIG_ENDIAN = sys.byteorder == "big"


def _endpoint(config: OpenAIConfig | OllamaConfig) -> OpenAIConfig:
    return config.as_openai() if isinstance(config, OllamaConfig) else config


def parse_embeddings(data: Any, expected: int) -> list[list[float]]:
    """Read ``data[*].embedding`` in input order, honouring ``index`` when present."""
    if not isinstance(data, dict) or not isinstance(data.get("data"), list):
        raise ParseError("Embedding response has no data list")
    items = data["data"]
    if len(items) != expected:
        raise ParseError(f"Expected {expected} embeddings, got {len(items)}")
    if all(isinstance(item, dict) and isinstance(item.get("index"), int) for item in items):
        items = sorted(items, key=lambda item: item["index"])
    vectors: list[list[float]] = []
    for item in items:
        embedding = item.get("embedding") if isinstance(item, dict) else None
        if not isinstance(embedding, list):
            raise ParseError("Embedding item has no vector")
        vectors.append([float(value) for value in embedding])
    return vectors


def embed_batch(
    config: OpenAIConfig | OllamaConfig,
    texts: Sequence[str],
    model: str = DEFAULT_EMBEDDING_MODEL,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> list[list[float]]:
    """One ``/embeddings`` round trip for a single batch of texts."""
    endpoint = _endpoint(config)
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            f"{endpoint.base_url.rstrip('/')}/embeddings",
            headers=bearer_headers(endpoint.api_key),
            body={"model": model, "input": list(texts)},
            timeout=timeout,
        )
        with response:
            data = read_json(response)
    return parse_embeddings(data, expected=len(texts))


def iter_embedding_batches(
    config: OpenAIConfig | OllamaConfig,
    texts: Sequence[str],
    model: str = DEFAULT_EMBEDDING_MODEL,
    *,
    batch_size: int = BATCH_SIZE,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> Iterator[tuple[int, list[list[float]]]]:
    """Yield ``(offset, vectors)`` per completed batch.

    A failing batch raises out of the iterator; batches already yielded stay
    with the caller.
    """
    if batch_size <= 0:
        raise ConfigError("batch_size must be positive")
    for offset in range(0, len(texts), batch_size):
        batch = texts[offset : offset + batch_size]
        try:
            vectors = embed_batch(config, batch, model, session=session, timeout=timeout)
        except AIBoxError:
            EMBEDDING_BATCHES.labels(status="error").inc()
            raise
        EMBEDDING_BATCHES.labels(status="ok").inc()
        yield offset, vectors


def generate_embeddings(
    config: OpenAIConfig | OllamaConfig,
    texts: Sequence[str],
    model: str = DEFAULT_EMBEDDING_MODEL,
    *,
    batch_size: int = BATCH_SIZE,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> list[list[float]]:
    """Return one vector per input text, in input order."""
    vectors: list[list[float]] = []
    for _, batch_vectors in iter_embedding_batches(
        config, texts, model, batch_size=batch_size, session=session, timeout=timeout
    ):
        vectors.extend(batch_vectors)
    return vectors


def embedding_to_bytes(vector: Sequence[float]) -> bytes:
    """Raw little-endian float32, four bytes per dimension, no header."""
    arr = array("f", vector)
    if _BIG_ENDIAN:
        arr.byteswap()
    return arr.tobytes()


def bytes_to_embedding(data: bytes) -> list[float]:
    if len(data) % 4:
        raise ParseError(f"Embedding blob length {len(data)} is not a multiple of 4")
    arr = array("f")
    arr.frombytes(data)
    if _BIG_ENDIAN:
        arr.byteswap()
    return arr.tolist()


__all__ = [
    "DEFAULT_EMBEDDING_MODEL",
    "BATCH_SIZE",
    "parse_embeddings",
    "embed_batch",
    "iter_embedding_batches",
    "generate_embeddings",
    "embedding_to_bytes",
    "bytes_to_embedding",
]
