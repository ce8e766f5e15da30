"""Provider-neutral chat data structures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

Role = Literal["system", "user", "assistant"]

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CLAUDE_BASE_URL = "https://api.anthropic.com"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"


@dataclass(slots=True)
class ChatMessage:
    role: Role
    content: str


@dataclass(slots=True)
class ChatRequest:
    """Ordered conversation plus the provider-local model id."""

    messages: list[ChatMessage]
    model: str
    stream: bool = False


@dataclass(slots=True)
class ChatResponse:
    content: str
    model: str


@dataclass(slots=True, frozen=True)
class StreamChunk:
    """One incremental delta; ``done`` is set on the single terminal chunk."""

    delta: str
    done: bool = False


TERMINAL_CHUNK = StreamChunk(delta="", done=True)


@dataclass(slots=True)
class ModelInfo:
    id: str
    name: str
    provider: str


@dataclass(slots=True)
class DeviceCodeResponse:
    device_code: str
    user_code: str
    verification_uri: str
    interval: int = 5
    expires_in: int | None = None


@dataclass(slots=True, frozen=True)
class CachedToken:
    token: str
    expires_at: int


# Provider configurations -------------------------------------------------


@dataclass(slots=True, frozen=True)
class OpenAIConfig:
    api_key: str
    base_url: str = DEFAULT_OPENAI_BASE_URL

    @property
    def label(self) -> str:
        return "openai"


@dataclass(slots=True, frozen=True)
class ClaudeConfig:
    api_key: str
    base_url: str = DEFAULT_CLAUDE_BASE_URL

    @property
    def label(self) -> str:
        return "claude"


@dataclass(slots=True, frozen=True)
class CopilotConfig:
    oauth_token: str
    api_base: str = "https://api.githubcopilot.com"
    github_api_base: str = "https://api.github.com"

    @property
    def label(self) -> str:
        return "copilot"


@dataclass(slots=True, frozen=True)
class OllamaConfig:
    base_url: str = DEFAULT_OLLAMA_HOST

    @property
    def label(self) -> str:
        return "ollama"

    def as_openai(self) -> OpenAIConfig:
        """Ollama speaks the OpenAI wire shape under ``/v1`` without a key."""
        return OpenAIConfig(api_key="", base_url=f"{self.base_url.rstrip('/')}/v1")


ProviderConfig = Union[OpenAIConfig, ClaudeConfig, CopilotConfig, OllamaConfig]


def split_system_prompt(messages: list[ChatMessage]) -> tuple[str | None, list[ChatMessage]]:
    """Return the first system message content and the remaining non-system turns in order."""
    system = next((message.content for message in messages if message.role == "system"), None)
    rest = [message for message in messages if message.role != "system"]
    return system, rest


__all__ = [
    "Role",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "StreamChunk",
    "TERMINAL_CHUNK",
    "ModelInfo",
    "DeviceCodeResponse",
    "CachedToken",
    "OpenAIConfig",
    "ClaudeConfig",
    "CopilotConfig",
    "OllamaConfig",
    "ProviderConfig",
    "split_system_prompt",
]
