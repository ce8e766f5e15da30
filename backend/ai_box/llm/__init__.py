"""LLM provider drivers and the streaming normalization layer."""

from .provider import chat, chat_stream, iter_chat_stream
from .sse import SSEFrameReader, iter_sse_payloads
from .token_cache import TokenCache
from .types import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ClaudeConfig,
    CopilotConfig,
    ModelInfo,
    OllamaConfig,
    OpenAIConfig,
    ProviderConfig,
    StreamChunk,
)

__all__ = [
    "chat",
    "chat_stream",
    "iter_chat_stream",
    "SSEFrameReader",
    "iter_sse_payloads",
    "TokenCache",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "ClaudeConfig",
    "CopilotConfig",
    "ModelInfo",
    "OllamaConfig",
    "OpenAIConfig",
    "ProviderConfig",
    "StreamChunk",
]
