"""Shared request helpers for the provider drivers."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping

import orjson
import requests

from ai_box.core.errors import ApiError, ParseError, TransportError

Timeout = float | tuple[float, float] | None

DEFAULT_TIMEOUT: tuple[float, float] = (10.0, 120.0)


def bearer_headers(api_key: str) -> dict[str, str]:
    """JSON headers, with a bearer token only when a key is actually set."""
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


@contextmanager
def open_session(session: requests.Session | None) -> Iterator[requests.Session]:
    """Use the injected session, or a private one closed after the call."""
    if session is not None:
        yield session
        return
    owned = requests.Session()
    try:
        yield owned
    finally:
        owned.close()


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    body: Any = None,
    data: Mapping[str, str] | None = None,
    stream: bool = False,
    timeout: Timeout = None,
) -> requests.Response:
    """Issue a request, mapping connection failures and non-2xx answers to typed errors."""
    kwargs: dict[str, Any] = {
        "headers": dict(headers or {}),
        "stream": stream,
        "timeout": timeout if timeout is not None else DEFAULT_TIMEOUT,
    }
    if body is not None:
        kwargs["data"] = orjson.dumps(body)
    elif data is not None:
        kwargs["data"] = data
    try:
        response = session.request(method, url, **kwargs)
    except requests.RequestException as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc
    if not response.ok:
        try:
            text = response.text
        finally:
            response.close()
        raise ApiError(response.status_code, text)
    return response


def read_json(response: requests.Response) -> Any:
    """Decode a full JSON body, raising :class:`ParseError` on garbage."""
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError as exc:
        raise ParseError(f"Malformed JSON response: {exc}") from exc
    except requests.RequestException as exc:
        raise TransportError(f"Reading response failed: {exc}") from exc


def iter_bytes(response: requests.Response) -> Iterator[bytes]:
    """Yield raw reads as they arrive, translating mid-stream failures."""
    try:
        for chunk in response.iter_content(chunk_size=None):
            if chunk:
                yield chunk
    except requests.RequestException as exc:
        raise TransportError(f"Stream interrupted: {exc}") from exc


__all__ = [
    "Timeout",
    "DEFAULT_TIMEOUT",
    "bearer_headers",
    "open_session",
    "send",
    "read_json",
    "iter_bytes",
]
