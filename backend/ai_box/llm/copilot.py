"""GitHub Copilot driver: device-flow login, session token exchange and chat.

Copilot chat speaks the OpenAI Chat Completions protocol, so request bodies
and stream decoding are shared with :mod:`ai_box.llm.openai`. What differs is
authentication. The long-lived OAuth token obtained through the device flow
is exchanged for a short-lived session token before every call, going through
a :class:`~ai_box.llm.token_cache.TokenCache` so that the exchange only hits
the network when the cached token is close to expiry.
"""

from __future__ import annotations

from typing import Any, Iterator

import requests

from ai_box.core.errors import ApiError, ParseError
from ai_box.core.logging import get_logger
from ai_box.llm import openai
from ai_box.llm.http import Timeout, open_session, read_json, send
from ai_box.llm.streaming import ChunkCallback, deliver, with_terminal
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import (
    CachedToken,
    ChatRequest,
    ChatResponse,
    CopilotConfig,
    DeviceCodeResponse,
    ModelInfo,
    StreamChunk,
)

logger = get_logger(__name__)

GITHUB_BASE_URL = "https://github.com"
CLIENT_ID = "Iv1.b507a08c87ecfe98"
DEVICE_SCOPE = "read:user"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
PENDING_ERRORS = frozenset({"authorization_pending", "slow_down"})

EDITOR_VERSION = "vscode/1.95.0"
EDITOR_PLUGIN_VERSION = "copilot-chat/0.22.0"
INTEGRATION_ID = "vscode-chat"
USER_AGENT = "GitHubCopilotChat/0.22.0"
PROVIDER_LABEL = "GitHub Copilot"


# Device flow --------------------------------------------------------------


def start_device_flow(
    *,
    client_id: str = CLIENT_ID,
    github_base_url: str = GITHUB_BASE_URL,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> DeviceCodeResponse:
    """Request a device/user code pair for the user to confirm in a browser."""
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            f"{github_base_url.rstrip('/')}/login/device/code",
            headers={"Accept": "application/json"},
            data={"client_id": client_id, "scope": DEVICE_SCOPE},
            timeout=timeout,
        )
        with response:
            data = read_json(response)
    try:
        return DeviceCodeResponse(
            device_code=data["device_code"],
            user_code=data["user_code"],
            verification_uri=data["verification_uri"],
            interval=int(data.get("interval") or 5),
            expires_in=data.get("expires_in"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseError(f"Unexpected device code response: {data!r}") from exc


def poll_device_flow(
    device_code: str,
    *,
    client_id: str = CLIENT_ID,
    github_base_url: str = GITHUB_BASE_URL,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> str | None:
    """Return the OAuth token once authorized, ``None`` while the user has not finished yet.

    ``authorization_pending`` and ``slow_down`` are the expected transient
    answers; every other error code (expired or denied) raises :class:`ApiError`.
    Polling cadence belongs to the caller, driven by the advertised interval.
    """
    with open_session(session) as http:
        response = send(
            http,
            "POST",
            f"{github_base_url.rstrip('/')}/login/oauth/access_token",
            headers={"Accept": "application/json"},
            data={
                "client_id": client_id,
                "device_code": device_code,
                "grant_type": DEVICE_GRANT_TYPE,
            },
            timeout=timeout,
        )
        with response:
            status = response.status_code
            data = read_json(response)
    if not isinstance(data, dict):
        raise ParseError(f"Unexpected token response: {data!r}")
    token = data.get("access_token")
    if token:
        return token
    error = data.get("error")
    if error in PENDING_ERRORS:
        return None
    detail = data.get("error_description") or error or "no access_token in response"
    raise ApiError(status, f"{error}: {detail}" if error else str(detail))


# Session token ------------------------------------------------------------


def exchange_token(
    config: CopilotConfig,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> CachedToken:
    """Trade the OAuth token for a short-lived Copilot session token."""
    with open_session(session) as http:
        response = send(
            http,
            "GET",
            f"{config.github_api_base.rstrip('/')}/copilot_internal/v2/token",
            headers={
                "Authorization": f"token {config.oauth_token}",
                "Accept": "application/json",
                "Editor-Version": EDITOR_VERSION,
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
        )
        with response:
            data = read_json(response)
    try:
        return CachedToken(token=data["token"], expires_at=int(data["expires_at"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ParseError("Unexpected Copilot token response") from exc


def session_token(
    config: CopilotConfig,
    token_cache: TokenCache | None = None,
    *,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> str:
    # Without a shared cache every call pays for its own exchange.
    cache = token_cache if token_cache is not None else TokenCache()
    return cache.get_token(lambda: exchange_token(config, session=session, timeout=timeout))


def chat_headers(token: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {token}",
        "Copilot-Integration-Id": INTEGRATION_ID,
        "Editor-Version": EDITOR_VERSION,
        "Editor-Plugin-Version": EDITOR_PLUGIN_VERSION,
        "User-Agent": USER_AGENT,
    }


# Chat ---------------------------------------------------------------------


def chat(
    config: CopilotConfig,
    request: ChatRequest,
    *,
    token_cache: TokenCache | None = None,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> ChatResponse:
    token = session_token(config, token_cache, session=session, timeout=timeout)
    return openai.request_completion(
        f"{config.api_base.rstrip('/')}/chat/completions",
        chat_headers(token),
        request,
        session=session,
        timeout=timeout,
    )


def _open_stream(
    config: CopilotConfig,
    request: ChatRequest,
    token_cache: TokenCache | None,
    session: requests.Session | None,
    timeout: Timeout,
) -> Iterator[StreamChunk]:
    token = session_token(config, token_cache, session=session, timeout=timeout)
    yield from openai.request_stream(
        f"{config.api_base.rstrip('/')}/chat/completions",
        chat_headers(token),
        request,
        session=session,
        timeout=timeout,
    )


def iter_stream(
    config: CopilotConfig,
    request: ChatRequest,
    *,
    token_cache: TokenCache | None = None,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> Iterator[StreamChunk]:
    return with_terminal(_open_stream(config, request, token_cache, session, timeout))


def chat_stream(
    config: CopilotConfig,
    request: ChatRequest,
    on_chunk: ChunkCallback,
    *,
    token_cache: TokenCache | None = None,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> str:
    return deliver(
        iter_stream(config, request, token_cache=token_cache, session=session, timeout=timeout),
        on_chunk,
    )


# Models -------------------------------------------------------------------


def parse_model_catalog(data: Any) -> list[ModelInfo]:
    """Keep chat-capable entries from either catalog shape.

    The Copilot API answers ``{"data": [{"id", "name", "capabilities": {"type"}}]}``;
    the GitHub Models catalog answers a bare list of ``{"name", "friendly_name", "task"}``.
    """
    models: list[ModelInfo] = []
    seen: set[str] = set()
    if isinstance(data, list):
        for entry in data:
            if not isinstance(entry, dict) or entry.get("task") != "chat-completion":
                continue
            model_id = entry.get("name")
            if not model_id or model_id in seen:
                continue
            seen.add(model_id)
            models.append(ModelInfo(f"copilot/{model_id}", entry.get("friendly_name") or model_id, PROVIDER_LABEL))
        return models
    if not isinstance(data, dict) or not isinstance(data.get("data"), list):
        raise ParseError("Unexpected model catalog response")
    for entry in data["data"]:
        if not isinstance(entry, dict):
            continue
        capabilities = entry.get("capabilities") or {}
        if capabilities.get("type") != "chat":
            continue
        model_id = entry.get("id")
        if not model_id or model_id in seen:
            continue
        seen.add(model_id)
        models.append(ModelInfo(f"copilot/{model_id}", entry.get("name") or model_id, PROVIDER_LABEL))
    return models


def fetch_models(
    config: CopilotConfig,
    *,
    token_cache: TokenCache | None = None,
    session: requests.Session | None = None,
    timeout: Timeout = None,
) -> list[ModelInfo]:
    token = session_token(config, token_cache, session=session, timeout=timeout)
    with open_session(session) as http:
        response = send(
            http,
            "GET",
            f"{config.api_base.rstrip('/')}/models",
            headers=chat_headers(token),
            timeout=timeout,
        )
        with response:
            data = read_json(response)
    return parse_model_catalog(data)


__all__ = [
    "start_device_flow",
    "poll_device_flow",
    "exchange_token",
    "session_token",
    "chat_headers",
    "chat",
    "iter_stream",
    "chat_stream",
    "parse_model_catalog",
    "fetch_models",
]
