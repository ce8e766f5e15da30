"""Single entry point for chat across all provider families."""

from __future__ import annotations

import time
from contextlib import closing
from typing import Iterator

import requests

from ai_box.core.errors import AIBoxError, ConfigError
from ai_box.core.logging import get_logger
from ai_box.core.metrics import PROVIDER_LATENCY, PROVIDER_REQUESTS, STREAM_CHUNKS
from ai_box.llm import claude, copilot, openai
from ai_box.llm.http import Timeout
from ai_box.llm.streaming import ChunkCallback, deliver
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import (
    ChatRequest,
    ChatResponse,
    ClaudeConfig,
    CopilotConfig,
    OllamaConfig,
    OpenAIConfig,
    ProviderConfig,
    StreamChunk,
)

logger = get_logger(__name__)


def _label(config: ProviderConfig) -> str:
    label = getattr(config, "label", None)
    if label is None:
        raise ConfigError(f"Unsupported provider config: {type(config).__name__}")
    return label


def chat(
    config: ProviderConfig,
    request: ChatRequest,
    *,
    timeout: Timeout = None,
    session: requests.Session | None = None,
    token_cache: TokenCache | None = None,
) -> ChatResponse:
    """Send a non-streaming chat request; any failure raises, nothing partial is returned."""
    provider = _label(config)
    logger.info("Chat request to %s model=%s", provider, request.model, extra={"ctx_provider": provider})
    started = time.perf_counter()
    status = "error"
    try:
        if isinstance(config, OllamaConfig):
            response = openai.chat(config.as_openai(), request, session=session, timeout=timeout)
        elif isinstance(config, OpenAIConfig):
            response = openai.chat(config, request, session=session, timeout=timeout)
        elif isinstance(config, ClaudeConfig):
            response = claude.chat(config, request, session=session, timeout=timeout)
        elif isinstance(config, CopilotConfig):
            response = copilot.chat(config, request, token_cache=token_cache, session=session, timeout=timeout)
        else:
            raise ConfigError(f"Unsupported provider config: {type(config).__name__}")
        status = "ok"
        return response
    finally:
        PROVIDER_REQUESTS.labels(provider=provider, mode="sync", status=status).inc()
        PROVIDER_LATENCY.labels(provider=provider, mode="sync").observe(time.perf_counter() - started)


def _driver_stream(
    config: ProviderConfig,
    request: ChatRequest,
    timeout: Timeout,
    session: requests.Session | None,
    token_cache: TokenCache | None,
) -> Iterator[StreamChunk]:
    if isinstance(config, OllamaConfig):
        return openai.iter_stream(config.as_openai(), request, session=session, timeout=timeout)
    if isinstance(config, OpenAIConfig):
        return openai.iter_stream(config, request, session=session, timeout=timeout)
    if isinstance(config, ClaudeConfig):
        return claude.iter_stream(config, request, session=session, timeout=timeout)
    if isinstance(config, CopilotConfig):
        return copilot.iter_stream(config, request, token_cache=token_cache, session=session, timeout=timeout)
    raise ConfigError(f"Unsupported provider config: {type(config).__name__}")


def iter_chat_stream(
    config: ProviderConfig,
    request: ChatRequest,
    *,
    timeout: Timeout = None,
    session: requests.Session | None = None,
    token_cache: TokenCache | None = None,
) -> Iterator[StreamChunk]:
    """Lazily yield stream chunks; the last one always has ``done=True``.

    Closing the iterator early closes the underlying connection.
    """
    provider = _label(config)
    logger.info("Streaming chat request to %s model=%s", provider, request.model, extra={"ctx_provider": provider})
    started = time.perf_counter()
    status = "error"
    delivered = 0
    try:
        with closing(_driver_stream(config, request, timeout, session, token_cache)) as chunks:
            for chunk in chunks:
                if chunk.delta:
                    delivered += len(chunk.delta)
                    STREAM_CHUNKS.labels(provider=provider).inc()
                if chunk.done:
                    status = "ok"
                    yield chunk
                    return
                yield chunk
        status = "ok"
    except GeneratorExit:
        if status != "ok":
            status = "cancelled"
        raise
    except AIBoxError:
        logger.warning("Stream from %s aborted after %d chars delivered", provider, delivered)
        raise
    finally:
        PROVIDER_REQUESTS.labels(provider=provider, mode="stream", status=status).inc()
        PROVIDER_LATENCY.labels(provider=provider, mode="stream").observe(time.perf_counter() - started)


def chat_stream(
    config: ProviderConfig,
    request: ChatRequest,
    on_chunk: ChunkCallback,
    *,
    timeout: Timeout = None,
    session: requests.Session | None = None,
    token_cache: TokenCache | None = None,
) -> str:
    """Drive ``on_chunk`` for each delta and return the full text."""
    chunks = iter_chat_stream(config, request, timeout=timeout, session=session, token_cache=token_cache)
    return deliver(chunks, on_chunk)


__all__ = ["chat", "chat_stream", "iter_chat_stream"]
