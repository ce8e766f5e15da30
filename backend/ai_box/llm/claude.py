"""Anthropic Messages API driver."""

from __future__ import annotations

from typing import Any, Iterable, Iterator

import orjson
import requests

from ai_box.core.errors import ParseError
from ai_box.core.logging import get_logger
from ai_box.llm.http import Timeout, iter_bytes, open_session, read_json, send
from ai_box.llm.sse import iter_sse_payloads
from ai_box.llm.streaming import ChunkCallback, deliver, with_terminal
from ai_box.llm.types import (
    TERMINAL_CHUNK,
    ChatRequest,
    ChatResponse,
    ClaudeConfig,
    StreamChunk,
    split_system_prompt,
)

logger = get_logger(__name__)

API_VERSION = "2023-06-01"
MAX_TOKENS = 4096


def build_body(request: ChatRequest, stream: bool) -> dict[str, Any]:
    system, turns = split_system_prompt(request.messages)
    body: dict[str, Any] = {
        "model": request.model,
        "max_tokens": MAX_TOKENS,
        "messages": [{"role": message.role, "content": message.content} for message in turns],
        "stream": stream,
    }
    if system is not None:
        body["system"] = system
    return body


def build_headers(config: ClaudeConfig) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "x-api-key": config.api_key,
        "anthropic-version": API_VERSION,
    }


def messages_url(config: ClaudeConfig) -> str:
    return f"{config.base_url.rstrip('/')}/v1/messages"


def parse_message(data: Any) -> str:
    """Join the text blocks of a non-streaming Messages response."""
    if not isinstance(data, dict) or not isinstance(data.get("content"), list):
        raise ParseError("Messages response has no content list")
    return "".join(
        block.get("text") or ""
        for block in data["content"]
        if isinstance(block, dict) and block.get("type", "text") == "text"
    )


def decode_stream(byte_chunks: Iterable[bytes]) -> Iterator[StreamChunk]:
    """Decode Messages API events; unknown event types are ignored."""
    for payload in iter_sse_payloads(byte_chunks):
        try:
            event = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.debug("Skipping malformed stream frame: %r", payload[:200])
            continue
        if not isinstance(event, dict):
            continue
        event_type = event.get("type")
        if event_type == "content_block_delta":
            delta = event.get("delta")
            text = delta.get("text") if isinstance(delta, dict) else None
            if isinstance(text, str) and text:
                yield StreamChunk(delta=text)
        elif event_type == "message_stop":
            yield TERMINAL_CHUNK
            return
        elif event_type == "error":
            logger.warning("Provider reported stream error: %s", event.get("error"))
    yield TERMINAL_CHUNK


def chat(
    config: ClaudeConfig,
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> ChatResponse:
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            messages_url(config),
            headers=build_headers(config),
            body=build_body(request, stream=False),
            timeout=timeout,
        )
        with response:
            data = read_json(response)
    return ChatResponse(content=parse_message(data), model=request.model)


def _open_stream(
    config: ClaudeConfig,
    request: ChatRequest,
    session: requests.Session | None,
    timeout: Timeout,
) -> Iterator[StreamChunk]:
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            messages_url(config),
            headers={**build_headers(config), "Accept": "text/event-stream"},
            body=build_body(request, stream=True),
            stream=True,
            timeout=timeout,
        )
        with response:
            yield from decode_stream(iter_bytes(response))


def iter_stream(
    config: ClaudeConfig,
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> Iterator[StreamChunk]:
    return with_terminal(_open_stream(config, request, session, timeout))


def chat_stream(
    config: ClaudeConfig,
    request: ChatRequest,
    on_chunk: ChunkCallback,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> str:
    return deliver(iter_stream(config, request, session=session, timeout=timeout), on_chunk)


__all__ = [
    "API_VERSION",
    "MAX_TOKENS",
    "build_body",
    "build_headers",
    "parse_message",
    "decode_stream",
    "chat",
    "iter_stream",
    "chat_stream",
]
