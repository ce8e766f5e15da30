"""Tests for settings, chat, ingestion and search services."""

from __future__ import annotations

from pathlib import Path

import pytest

from ai_box.core.config import Settings
from ai_box.core.errors import ApiError, ConfigError, NotFoundError, TransportError, UnsupportedInputError
from ai_box.ingest.pipeline import IngestPipeline
from ai_box.llm import provider
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import (
    CachedToken,
    ChatResponse,
    ClaudeConfig,
    CopilotConfig,
    OllamaConfig,
    OpenAIConfig,
    StreamChunk,
)
from ai_box.retrieval.search import QueryService
from ai_box.services.chat import ChatService
from ai_box.services.retry import call_with_retry
from ai_box.services.settings import SettingsService, mask_secret


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "unused.db", chunk_size=10, chunk_overlap=0, embedding_batch_size=2)


@pytest.fixture
def token_cache() -> TokenCache:
    return TokenCache()


@pytest.fixture
def settings_service(store, settings: Settings, token_cache: TokenCache) -> SettingsService:
    return SettingsService(store, settings, token_cache)


@pytest.fixture
def chat_service(store, settings: Settings, settings_service: SettingsService, token_cache: TokenCache) -> ChatService:
    return ChatService(store, settings, settings_service, token_cache)


# Settings -----------------------------------------------------------------


def test_secrets_are_masked(settings_service: SettingsService) -> None:
    settings_service.set("openai_api_key", "sk-abcdefghijklmnop")
    settings_service.set("claude_api_key", "short")
    settings_service.set("theme", "dark")

    masked = settings_service.get_all()

    assert masked["openai_api_key"] == "sk-a...mnop"
    assert masked["claude_api_key"] == "********"
    assert masked["theme"] == "dark"
    assert settings_service.get_all(masked=False)["openai_api_key"] == "sk-abcdefghijklmnop"
    assert mask_secret("12345678") == "********"


def test_unknown_setting_key_is_config_error(settings_service: SettingsService) -> None:
    with pytest.raises(ConfigError):
        settings_service.set("nonsense", "1")


def test_resolve_provider_by_prefix(settings_service: SettingsService) -> None:
    settings_service.set("openai_api_key", "sk-1")
    settings_service.set("claude_api_key", "ant-1")
    settings_service.set("ollama_host", "http://gpu-box:11434")
    settings_service.set("copilot_oauth_token", "gho_1")

    assert settings_service.resolve_provider("openai/gpt-4o") == (
        OpenAIConfig("sk-1", "https://api.openai.com/v1"),
        "gpt-4o",
    )
    assert settings_service.resolve_provider("gpt-4o")[1] == "gpt-4o"
    claude_config, claude_model = settings_service.resolve_provider("claude/claude-sonnet-4-20250514")
    assert isinstance(claude_config, ClaudeConfig) and claude_model == "claude-sonnet-4-20250514"
    assert settings_service.resolve_provider("ollama/llama3") == (OllamaConfig("http://gpu-box:11434"), "llama3")
    copilot_config, _ = settings_service.resolve_provider("copilot/gpt-4o")
    assert isinstance(copilot_config, CopilotConfig) and copilot_config.oauth_token == "gho_1"


@pytest.mark.parametrize("model", ["", "mistral/large", "claude/"])
def test_resolve_provider_rejects_bad_ids(settings_service: SettingsService, model: str) -> None:
    settings_service.set("claude_api_key", "ant-1")
    with pytest.raises(ConfigError):
        settings_service.resolve_provider(model)


def test_missing_credentials_are_config_errors(settings_service: SettingsService) -> None:
    with pytest.raises(ConfigError):
        settings_service.resolve_provider("openai/gpt-4o")
    with pytest.raises(ConfigError):
        settings_service.resolve_provider("copilot/gpt-4o")


def test_changing_copilot_token_clears_session_cache(
    settings_service: SettingsService, token_cache: TokenCache
) -> None:
    token_cache.store(CachedToken("tid=old", 9_999_999_999))
    settings_service.set("copilot_oauth_token", "gho_new")
    assert token_cache.peek() is None
    assert settings_service.copilot_is_logged_in()
    settings_service.copilot_logout()
    assert not settings_service.copilot_is_logged_in()


def test_model_catalog_depends_on_configured_keys(settings_service: SettingsService) -> None:
    providers = {model.provider for model in settings_service.available_models()}
    assert providers == {"Ollama"}
    settings_service.set("claude_api_key", "ant-1")
    assert "Anthropic" in {model.provider for model in settings_service.available_models()}


# Retry --------------------------------------------------------------------


def test_retry_only_retries_retryable_errors() -> None:
    delays: list[float] = []
    attempts = iter([ApiError(503, "busy"), TransportError("reset"), "done"])

    def flaky() -> str:
        outcome = next(attempts)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert call_with_retry(flaky, attempts=3, backoff=0.5, sleep=delays.append) == "done"
    assert delays == [0.5, 1.0]

    def unauthorized() -> str:
        raise ApiError(401, "nope")

    with pytest.raises(ApiError):
        call_with_retry(unauthorized, attempts=3, sleep=delays.append)
    assert delays == [0.5, 1.0]


# Chat ---------------------------------------------------------------------


def test_reply_stores_both_turns(
    chat_service: ChatService, settings_service: SettingsService, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings_service.set("openai_api_key", "sk-1")
    seen = {}

    def fake_chat(config, request, **kwargs):
        seen["request"] = request
        return ChatResponse(content="Hi!", model=request.model)

    monkeypatch.setattr(provider, "chat", fake_chat)
    conversation = chat_service.create_conversation("t")

    reply = chat_service.reply(conversation.id, "Hello", "openai/gpt-4o")

    assert reply.role == "assistant" and reply.content == "Hi!"
    assert seen["request"].model == "gpt-4o"
    assert [message.content for message in seen["request"].messages] == ["Hello"]
    assert [message.role for message in chat_service.get_messages(conversation.id)] == ["user", "assistant"]


def test_streamed_reply_is_stored_after_terminal_chunk(
    chat_service: ChatService, settings_service: SettingsService, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings_service.set("ollama_host", "http://localhost:11434")

    def fake_stream(config, request, **kwargs):
        yield StreamChunk("Hel")
        yield StreamChunk("lo")
        yield StreamChunk("", done=True)

    monkeypatch.setattr(provider, "iter_chat_stream", fake_stream)
    conversation = chat_service.create_conversation("t")
    received: list[StreamChunk] = []

    message = chat_service.send_message(conversation.id, "Hi", "ollama/llama3", on_chunk=received.append)

    assert message.content == "Hello"
    assert [chunk.delta for chunk in received] == ["Hel", "lo", ""]


def test_relay_closes_provider_stream_after_terminal_chunk(
    chat_service: ChatService, monkeypatch: pytest.MonkeyPatch
) -> None:
    finished: list[bool] = []

    def fake_stream(config, request, **kwargs):
        try:
            yield StreamChunk("done", done=True)
        finally:
            finished.append(True)

    monkeypatch.setattr(provider, "iter_chat_stream", fake_stream)
    conversation = chat_service.create_conversation("t")

    chunks = chat_service.stream_reply(conversation.id, "Hi", "ollama/llama3")

    assert [chunk.delta for chunk in chunks] == ["done"]
    assert finished == [True]


def test_failed_stream_stores_no_assistant_message(
    chat_service: ChatService, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_stream(config, request, **kwargs):
        yield StreamChunk("partial")
        raise TransportError("connection reset")

    monkeypatch.setattr(provider, "iter_chat_stream", broken_stream)
    conversation = chat_service.create_conversation("t")

    with pytest.raises(TransportError):
        list(chat_service.stream_reply(conversation.id, "Hi", "ollama/llama3"))

    assert [message.role for message in chat_service.get_messages(conversation.id)] == ["user"]


def test_unknown_conversation_is_not_found(chat_service: ChatService) -> None:
    with pytest.raises(NotFoundError):
        chat_service.stream_reply("missing", "Hi", "ollama/llama3")
    with pytest.raises(NotFoundError):
        chat_service.delete_conversation("missing")


# Knowledge base -----------------------------------------------------------


def test_upload_without_key_keeps_document_and_warns(store, settings: Settings, tmp_path: Path) -> None:
    source = tmp_path / "notes.txt"
    source.write_text("The quick brown fox jumps over the lazy dog.", encoding="utf-8")

    document, result = IngestPipeline(store, settings).upload_document(source)

    assert document.filename == "notes.txt" and document.file_type == "txt"
    assert result.chunks == len(store.get_chunks(document.id)) > 1
    assert result.embedded_chunks == 0
    assert "not configured" in (result.warning or "")


def test_partial_embedding_failure_is_soft(
    store, settings: Settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store.set_setting("openai_api_key", "sk-1")
    source = tmp_path / "notes.md"
    source.write_text("# Notes\n\n" + "word " * 20, encoding="utf-8")

    def fake_batches(config, texts, model, **kwargs):
        yield 0, [[1.0, 0.0], [0.0, 1.0]]
        raise ApiError(500, "embedding backend down")

    monkeypatch.setattr("ai_box.ingest.pipeline.iter_embedding_batches", fake_batches)

    document, result = IngestPipeline(store, settings).upload_document(source)

    assert result.embedded_chunks == 2
    assert result.chunks > 2
    assert "embedding backend down" in (result.warning or "")
    embedded = [chunk for chunk in store.get_chunks(document.id) if chunk.embedding is not None]
    assert [chunk.chunk_index for chunk in embedded] == [0, 1]


def test_unsupported_and_empty_uploads_are_rejected(store, settings: Settings, tmp_path: Path) -> None:
    pipeline = IngestPipeline(store, settings)
    sheet = tmp_path / "data.xlsx"
    sheet.write_bytes(b"PK")
    with pytest.raises(UnsupportedInputError, match="Unsupported file type"):
        pipeline.upload_document(sheet)

    blank = tmp_path / "blank.txt"
    blank.write_text("   \n\n", encoding="utf-8")
    with pytest.raises(UnsupportedInputError, match="empty"):
        pipeline.upload_document(blank)
    assert store.list_documents() == []


def test_search_ranks_embedded_chunks(
    store, settings: Settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store.set_setting("openai_api_key", "sk-1")
    from ai_box.ingest.chunker import build_chunk_payloads

    chunks = build_chunk_payloads("doc-1", ["cats purr", "dogs bark", "unembedded"])
    store.add_document("pets.txt", "txt", str(tmp_path / "pets.txt"), 30, chunks, document_id="doc-1")
    store.update_chunk_embeddings([(chunks[0].id, [1.0, 0.0]), (chunks[1].id, [0.0, 1.0])])
    monkeypatch.setattr("ai_box.retrieval.search.generate_embeddings", lambda *args, **kwargs: [[0.1, 0.9]])

    hits = QueryService(store, settings).search("which animal barks?", top_k=5)

    assert [hit.content for hit in hits] == ["dogs bark", "cats purr"]
    assert hits[0].score > hits[1].score
    assert hits[0].document_id == "doc-1"


def test_search_requires_openai_key(store, settings: Settings) -> None:
    with pytest.raises(ConfigError, match="OpenAI API key required"):
        QueryService(store, settings).search("anything")
