"""API integration tests."""

from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from fastapi.testclient import TestClient

from ai_box.app import app
from ai_box.core.errors import ApiError
from ai_box.llm import provider
from ai_box.llm.types import ChatResponse, StreamChunk


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


def _frames(body: str) -> list[dict]:
    return [orjson.loads(line[len("data: ") :]) for line in body.splitlines() if line.startswith("data: ")]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_metrics_exposes_provider_counters(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "aibox_provider_requests_total" in resp.text


def test_settings_are_masked_and_validated(client: TestClient) -> None:
    assert client.put("/settings/openai_api_key", json={"value": "sk-abcdefghijklmnop"}).status_code == 200
    assert client.get("/settings").json() == {"openai_api_key": "sk-a...mnop"}

    resp = client.put("/settings/bogus", json={"value": "x"})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "config"

    assert client.delete("/settings/openai_api_key").status_code == 200
    assert client.delete("/settings/openai_api_key").status_code == 404


def test_models_without_keys_lists_ollama_only(client: TestClient) -> None:
    resp = client.get("/models")
    assert resp.status_code == 200
    assert {model["provider"] for model in resp.json()} == {"Ollama"}


def test_conversation_lifecycle(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    client.put("/settings/claude_api_key", json={"value": "ant-key"})
    monkeypatch.setattr(
        provider,
        "chat",
        lambda config, request, **kwargs: ChatResponse(content=f"echo from {config.label}", model=request.model),
    )

    conversation = client.post("/conversations", json={"title": "Trip"}).json()
    reply = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Plan a trip", "model": "claude/claude-sonnet-4-20250514"},
    )
    assert reply.status_code == 200
    assert reply.json()["content"] == "echo from claude"

    messages = client.get(f"/conversations/{conversation['id']}/messages").json()
    assert [message["role"] for message in messages] == ["user", "assistant"]

    assert client.patch(f"/conversations/{conversation['id']}", json={"title": "Rome"}).status_code == 200
    assert client.get("/conversations").json()[0]["title"] == "Rome"
    assert client.delete(f"/conversations/{conversation['id']}").status_code == 200
    assert client.get(f"/conversations/{conversation['id']}/messages").status_code == 404


def test_streaming_reply_emits_sse_frames(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_stream(config, request, **kwargs):
        yield StreamChunk("Hel")
        yield StreamChunk("lo")
        yield StreamChunk("", done=True)

    monkeypatch.setattr(provider, "iter_chat_stream", fake_stream)
    conversation = client.post("/conversations", json={"title": "s"}).json()

    resp = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Hi", "model": "ollama/llama3", "stream": True},
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert _frames(resp.text) == [
        {"delta": "Hel", "done": False},
        {"delta": "lo", "done": False},
        {"delta": "", "done": True},
    ]
    messages = client.get(f"/conversations/{conversation['id']}/messages").json()
    assert messages[-1]["content"] == "Hello"


def test_stream_failure_becomes_error_frame(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_stream(config, request, **kwargs):
        yield StreamChunk("Hel")
        raise ApiError(500, "upstream exploded")

    monkeypatch.setattr(provider, "iter_chat_stream", failing_stream)
    conversation = client.post("/conversations", json={"title": "s"}).json()

    resp = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Hi", "model": "ollama/llama3", "stream": True},
    )

    frames = _frames(resp.text)
    assert frames[0] == {"delta": "Hel", "done": False}
    assert frames[-1]["kind"] == "api"
    assert "upstream exploded" in frames[-1]["error"]


def test_missing_credentials_map_to_400(client: TestClient) -> None:
    conversation = client.post("/conversations", json={"title": "x"}).json()
    resp = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Hi", "model": "openai/gpt-4o"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"detail": "OpenAI API key not configured", "kind": "config"}


def test_provider_failure_maps_to_502(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def unavailable(config, request, **kwargs):
        raise ApiError(503, "overloaded")

    monkeypatch.setattr(provider, "chat", unavailable)
    conversation = client.post("/conversations", json={"title": "x"}).json()

    resp = client.post(
        f"/conversations/{conversation['id']}/messages",
        json={"content": "Hi", "model": "ollama/llama3"},
    )

    assert resp.status_code == 502
    assert resp.json()["kind"] == "api"


def test_upload_list_delete_document(tmp_path: Path, client: TestClient) -> None:
    sample = tmp_path / "sample.md"
    sample.write_text("# Sample\n\nThis is a sample document about retrieval.")

    upload = client.post("/documents", json={"path": str(sample)})
    assert upload.status_code == 200
    payload = upload.json()
    assert payload["chunks"] >= 1
    assert payload["embedded_chunks"] == 0
    assert payload["warning"]

    documents = client.get("/documents").json()
    assert [document["filename"] for document in documents] == ["sample.md"]

    document_id = payload["document"]["id"]
    assert client.delete(f"/documents/{document_id}").status_code == 200
    assert client.delete(f"/documents/{document_id}").status_code == 404


def test_unsupported_upload_is_400(tmp_path: Path, client: TestClient) -> None:
    sample = tmp_path / "sheet.csv"
    sample.write_text("a,b\n1,2\n")
    resp = client.post("/documents", json={"path": str(sample)})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "unsupported_input"


def test_search_without_key_is_400(client: TestClient) -> None:
    resp = client.post("/search", json={"query": "retrieval"})
    assert resp.status_code == 400
    assert "OpenAI API key required" in resp.json()["detail"]


def test_copilot_status_and_logout(client: TestClient) -> None:
    assert client.get("/copilot/status").json() == {"logged_in": False}
    client.put("/settings/copilot_oauth_token", json={"value": "gho_token_value"})
    assert client.get("/copilot/status").json() == {"logged_in": True}
    assert client.delete("/copilot/login").status_code == 200
    assert client.get("/copilot/status").json() == {"logged_in": False}
