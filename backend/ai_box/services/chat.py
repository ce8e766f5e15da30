"""Conversation management and provider-backed replies."""

from __future__ import annotations

from contextlib import closing
from typing import Iterator

from ai_box.core.config import Settings
from ai_box.core.errors import NotFoundError
from ai_box.core.logging import get_logger
from ai_box.db.store import Store
from ai_box.llm import provider
from ai_box.llm.streaming import ChunkCallback, deliver
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import ChatMessage, ChatRequest, ChatResponse, ProviderConfig, StreamChunk
from ai_box.models.entities import Conversation, Message
from ai_box.services.retry import call_with_retry
from ai_box.services.settings import SettingsService

logger = get_logger(__name__)


class ChatService:
    """Stores turns and relays them to the provider selected by the model id."""

    def __init__(
        self,
        store: Store,
        settings: Settings,
        settings_service: SettingsService,
        token_cache: TokenCache,
    ) -> None:
        self.store = store
        self.settings = settings
        self.settings_service = settings_service
        self.token_cache = token_cache

    # Conversations ----------------------------------------------------

    def create_conversation(self, title: str, model: str | None = None) -> Conversation:
        return self.store.create_conversation(title, model)

    def list_conversations(self) -> list[Conversation]:
        return self.store.list_conversations()

    def rename_conversation(self, conversation_id: str, title: str) -> None:
        if not self.store.rename_conversation(conversation_id, title):
            raise NotFoundError(f"Conversation {conversation_id} not found")

    def delete_conversation(self, conversation_id: str) -> None:
        if not self.store.delete_conversation(conversation_id):
            raise NotFoundError(f"Conversation {conversation_id} not found")

    def get_messages(self, conversation_id: str) -> list[Message]:
        self._require_conversation(conversation_id)
        return self.store.get_messages(conversation_id)

    def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    # Replies ----------------------------------------------------------

    def _prepare(
        self, conversation_id: str, content: str, model: str, stream: bool
    ) -> tuple[ProviderConfig, ChatRequest]:
        self._require_conversation(conversation_id)
        config, model_id = self.settings_service.resolve_provider(model)
        self.store.add_message(conversation_id, "user", content)
        history = [
            ChatMessage(role=message.role, content=message.content)
            for message in self.store.get_messages(conversation_id)
        ]
        return config, ChatRequest(messages=history, model=model_id, stream=stream)

    def reply(self, conversation_id: str, content: str, model: str) -> Message:
        """Non-streaming turn, retried according to the configured policy."""
        config, request = self._prepare(conversation_id, content, model, stream=False)

        def _call() -> ChatResponse:
            return provider.chat(
                config,
                request,
                timeout=self.settings.request_timeout,
                token_cache=self.token_cache,
            )

        response = call_with_retry(_call, attempts=self.settings.retry_attempts, backoff=self.settings.retry_backoff)
        return self.store.add_message(conversation_id, "assistant", response.content)

    def stream_reply(self, conversation_id: str, content: str, model: str) -> Iterator[StreamChunk]:
        """Yield the assistant's deltas; the full reply is stored once the terminal chunk arrives.

        Setup errors (unknown conversation, missing credentials) raise before
        the first chunk. A stream that fails part way stores nothing for the
        assistant.
        """
        config, request = self._prepare(conversation_id, content, model, stream=True)
        return self._relay(conversation_id, config, request)

    def _relay(self, conversation_id: str, config: ProviderConfig, request: ChatRequest) -> Iterator[StreamChunk]:
        parts: list[str] = []
        chunks = provider.iter_chat_stream(
            config,
            request,
            timeout=self.settings.request_timeout,
            token_cache=self.token_cache,
        )
        with closing(chunks):
            for chunk in chunks:
                if chunk.done:
                    parts.append(chunk.delta)
                    text = "".join(parts)
                    self.store.add_message(conversation_id, "assistant", text)
                    logger.info("Stored assistant reply for %s (%d chars)", conversation_id, len(text))
                    yield chunk
                    return
                parts.append(chunk.delta)
                yield chunk

    def send_message(
        self,
        conversation_id: str,
        content: str,
        model: str,
        on_chunk: ChunkCallback | None = None,
    ) -> Message:
        """Stream a reply through ``on_chunk`` and return the stored assistant message."""
        deliver(self.stream_reply(conversation_id, content, model), on_chunk or (lambda _chunk: None))
        messages = self.store.get_messages(conversation_id)
        return messages[-1]


__all__ = ["ChatService"]
