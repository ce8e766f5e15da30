"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

PROVIDER_REQUESTS = Counter(
    "aibox_provider_requests_total",
    "Chat requests sent to LLM providers",
    labelnames=("provider", "mode", "status"),
    registry=REGISTRY,
)

PROVIDER_LATENCY = Histogram(
    "aibox_provider_latency_seconds",
    "Wall time of chat requests, including the full stream",
    labelnames=("provider", "mode"),
    registry=REGISTRY,
)

STREAM_CHUNKS = Counter(
    "aibox_stream_chunks_total",
    "Non-terminal stream deltas delivered to callers",
    labelnames=("provider",),
    registry=REGISTRY,
)

EMBEDDING_BATCHES = Counter(
    "aibox_embedding_batches_total",
    "Embedding API batches by outcome",
    labelnames=("status",),
    registry=REGISTRY,
)

SEARCH_LATENCY = Histogram(
    "aibox_search_latency_seconds",
    "Knowledge base search latency",
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "PROVIDER_REQUESTS",
    "PROVIDER_LATENCY",
    "STREAM_CHUNKS",
    "EMBEDDING_BATCHES",
    "SEARCH_LATENCY",
    "metrics_response",
]
