"""Tests for the GitHub Copilot driver and the session token cache."""

from __future__ import annotations

import pytest

from ai_box.core.errors import ApiError, ConfigError
from ai_box.llm import copilot
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import CachedToken, ChatMessage, ChatRequest, CopilotConfig

from fakes import FakeResponse, FakeSession, openai_delta, sse

CONFIG = CopilotConfig(
    oauth_token="gho_oauth",
    api_base="https://copilot.example.test",
    github_api_base="https://api.github.example.test",
)
NOW = 1_700_000_000


def _request() -> ChatRequest:
    return ChatRequest(messages=[ChatMessage("user", "hi")], model="gpt-4o")


def _token_response(token: str = "tid=session", expires_at: int = NOW + 1800) -> FakeResponse:
    return FakeResponse(json_body={"token": token, "expires_at": expires_at})


def _completion(text: str) -> FakeResponse:
    return FakeResponse(json_body={"choices": [{"message": {"content": text}}]})


def test_start_device_flow_posts_client_id_and_scope() -> None:
    session = FakeSession(
        FakeResponse(
            json_body={
                "device_code": "dev-123",
                "user_code": "ABCD-1234",
                "verification_uri": "https://github.com/login/device",
                "interval": 5,
                "expires_in": 900,
            }
        )
    )

    device = copilot.start_device_flow(client_id="client-x", github_base_url="https://gh.test", session=session)

    assert device.user_code == "ABCD-1234"
    assert device.interval == 5
    call = session.calls[0]
    assert call["url"] == "https://gh.test/login/device/code"
    assert call["data"] == {"client_id": "client-x", "scope": "read:user"}
    assert call["headers"]["Accept"] == "application/json"


@pytest.mark.parametrize("error", ["authorization_pending", "slow_down"])
def test_poll_returns_none_while_pending(error: str) -> None:
    session = FakeSession(FakeResponse(json_body={"error": error}))
    assert copilot.poll_device_flow("dev-123", session=session) is None
    assert session.calls[0]["data"]["grant_type"] == "urn:ietf:params:oauth:grant-type:device_code"


def test_poll_returns_token_once_authorized() -> None:
    session = FakeSession(FakeResponse(json_body={"access_token": "gho_new", "token_type": "bearer"}))
    assert copilot.poll_device_flow("dev-123", session=session) == "gho_new"


def test_poll_raises_on_expired_code() -> None:
    session = FakeSession(
        FakeResponse(json_body={"error": "expired_token", "error_description": "The device code has expired."})
    )
    with pytest.raises(ApiError, match="expired_token"):
        copilot.poll_device_flow("dev-123", session=session)


def test_token_freshness_respects_refresh_margin() -> None:
    now = [0.0]
    cache = TokenCache(margin_seconds=90, clock=lambda: now[0])
    token = CachedToken(token="t", expires_at=NOW)

    now[0] = NOW - 90 - 1
    assert cache.is_fresh(token)
    now[0] = NOW - 90 + 1
    assert not cache.is_fresh(token)
    assert not cache.is_fresh(None)


def test_margin_outside_range_is_rejected() -> None:
    with pytest.raises(ConfigError):
        TokenCache(margin_seconds=30)


def test_chat_reuses_cached_session_token() -> None:
    cache = TokenCache(clock=lambda: NOW)
    session = FakeSession(_token_response(), _completion("one"), _completion("two"))

    first = copilot.chat(CONFIG, _request(), token_cache=cache, session=session)
    second = copilot.chat(CONFIG, _request(), token_cache=cache, session=session)

    assert (first.content, second.content) == ("one", "two")
    exchange, chat_call, _ = session.calls
    assert exchange["method"] == "GET"
    assert exchange["url"] == "https://api.github.example.test/copilot_internal/v2/token"
    assert exchange["headers"]["Authorization"] == "token gho_oauth"
    assert chat_call["url"] == "https://copilot.example.test/chat/completions"
    assert chat_call["headers"]["Authorization"] == "Bearer tid=session"
    assert chat_call["headers"]["Copilot-Integration-Id"] == "vscode-chat"
    assert chat_call["headers"]["Editor-Version"].startswith("vscode/")


def test_stale_token_is_exchanged_again() -> None:
    now = [float(NOW)]
    cache = TokenCache(margin_seconds=60, clock=lambda: now[0])
    session = FakeSession(
        _token_response("tid=first", expires_at=NOW + 100),
        _completion("a"),
        _token_response("tid=second", expires_at=NOW + 4000),
        _completion("b"),
    )

    copilot.chat(CONFIG, _request(), token_cache=cache, session=session)
    now[0] = NOW + 50
    copilot.chat(CONFIG, _request(), token_cache=cache, session=session)

    assert session.calls[3]["headers"]["Authorization"] == "Bearer tid=second"
    assert cache.peek() == CachedToken("tid=second", NOW + 4000)


def test_stream_goes_through_token_exchange() -> None:
    cache = TokenCache(clock=lambda: NOW)
    body = sse(openai_delta("co"), openai_delta("pilot"), "[DONE]")
    session = FakeSession(_token_response(), FakeResponse(chunks=[body]))

    chunks = list(copilot.iter_stream(CONFIG, _request(), token_cache=cache, session=session))

    assert "".join(chunk.delta for chunk in chunks) == "copilot"
    assert chunks[-1].done


def test_failed_exchange_surfaces_api_error() -> None:
    session = FakeSession(FakeResponse(status_code=401, text="Bad credentials"))
    with pytest.raises(ApiError) as excinfo:
        copilot.chat(CONFIG, _request(), token_cache=TokenCache(), session=session)
    assert excinfo.value.status == 401


def test_model_catalog_keeps_chat_models_once() -> None:
    data = {
        "data": [
            {"id": "gpt-4o", "name": "GPT-4o", "capabilities": {"type": "chat"}},
            {"id": "gpt-4o", "name": "GPT-4o", "capabilities": {"type": "chat"}},
            {"id": "text-embedding-3-small", "name": "Embedding", "capabilities": {"type": "embeddings"}},
            {"id": "claude-3.5-sonnet", "capabilities": {"type": "chat"}},
        ]
    }
    models = copilot.parse_model_catalog(data)
    assert [model.id for model in models] == ["copilot/gpt-4o", "copilot/claude-3.5-sonnet"]
    assert models[1].name == "claude-3.5-sonnet"
    assert {model.provider for model in models} == {"GitHub Copilot"}


def test_model_catalog_accepts_github_models_list() -> None:
    data = [
        {"name": "Phi-3-mini", "friendly_name": "Phi-3 mini", "task": "chat-completion"},
        {"name": "embed-v3", "friendly_name": "Embed v3", "task": "embeddings"},
    ]
    assert [model.id for model in copilot.parse_model_catalog(data)] == ["copilot/Phi-3-mini"]
