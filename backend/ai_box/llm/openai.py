"""OpenAI-compatible chat completions driver (also used for Ollama and Copilot)."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

import orjson
import requests

from ai_box.core.errors import ParseError
from ai_box.core.logging import get_logger
from ai_box.llm.http import Timeout, bearer_headers, iter_bytes, open_session, read_json, send
from ai_box.llm.sse import iter_sse_payloads
from ai_box.llm.streaming import ChunkCallback, deliver, with_terminal
from ai_box.llm.types import TERMINAL_CHUNK, ChatRequest, ChatResponse, OpenAIConfig, StreamChunk

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


def build_body(request: ChatRequest, stream: bool) -> dict[str, Any]:
    return {
        "model": request.model,
        "messages": [{"role": message.role, "content": message.content} for message in request.messages],
        "stream": stream,
    }


def parse_completion(data: Any) -> str:
    """Extract ``choices[0].message.content`` from a non-streaming body."""
    if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
        raise ParseError("Completion response has no choices list")
    choices = data["choices"]
    if not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise ParseError("Completion choice has no message")
    return message.get("content") or ""


def decode_stream(byte_chunks: Iterable[bytes]) -> Iterator[StreamChunk]:
    """Decode Chat Completions SSE frames into chunks, ending with exactly one terminal chunk."""
    for payload in iter_sse_payloads(byte_chunks):
        if payload == DONE_SENTINEL:
            yield TERMINAL_CHUNK
            return
        try:
            event = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.debug("Skipping malformed stream frame: %r", payload[:200])
            continue
        choices = event.get("choices") if isinstance(event, dict) else None
        if not choices or not isinstance(choices[0], dict):
            continue
        choice = choices[0]
        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(content, str) and content:
            yield StreamChunk(delta=content)
        if choice.get("finish_reason") is not None:
            yield TERMINAL_CHUNK
            return
    yield TERMINAL_CHUNK


def request_completion(
    url: str,
    headers: Mapping[str, str],
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> ChatResponse:
    with open_session(session) as http:
        response = send(http, "POST", url, headers=headers, body=build_body(request, stream=False), timeout=timeout)
        with response:
            data = read_json(response)
    return ChatResponse(content=parse_completion(data), model=request.model)


def request_stream(
    url: str,
    headers: Mapping[str, str],
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> Iterator[StreamChunk]:
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            url,
            headers={**headers, "Accept": "text/event-stream"},
            body=build_body(request, stream=True),
            stream=True,
            timeout=timeout,
        )
        with response:
            yield from decode_stream(iter_bytes(response))


def completions_url(config: OpenAIConfig) -> str:
    return f"{config.base_url.rstrip('/')}/chat/completions"


def chat(
    config: OpenAIConfig,
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> ChatResponse:
    return request_completion(
        completions_url(config), bearer_headers(config.api_key), request, session=session, timeout=timeout
    )


def iter_stream(
    config: OpenAIConfig,
    request: ChatRequest,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> Iterator[StreamChunk]:
    return with_terminal(
        request_stream(completions_url(config), bearer_headers(config.api_key), request, session=session, timeout=timeout)
    )


def chat_stream(
    config: OpenAIConfig,
    request: ChatRequest,
    on_chunk: ChunkCallback,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> str:
    return deliver(iter_stream(config, request, session=session, timeout=timeout), on_chunk)


__all__ = [
    "build_body",
    "parse_completion",
    "decode_stream",
    "request_completion",
    "request_stream",
    "completions_url",
    "chat",
    "iter_stream",
    "chat_stream",
]
