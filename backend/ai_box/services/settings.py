"""Stored user settings, provider resolution and the model catalog."""

from __future__ import annotations

from ai_box.core.config import Settings
from ai_box.core.errors import ConfigError
from ai_box.core.logging import get_logger
from ai_box.db.store import Store
from ai_box.llm import copilot
from ai_box.llm.token_cache import TokenCache
from ai_box.llm.types import (
    ClaudeConfig,
    CopilotConfig,
    DeviceCodeResponse,
    ModelInfo,
    OllamaConfig,
    OpenAIConfig,
    ProviderConfig,
)

logger = get_logger(__name__)

SETTING_KEYS = (
    "openai_api_key",
    "openai_base_url",
    "claude_api_key",
    "claude_base_url",
    "ollama_host",
    "copilot_oauth_token",
    "default_model",
    "theme",
)
SECRET_KEYS = frozenset({"openai_api_key", "claude_api_key", "copilot_oauth_token"})
COPILOT_TOKEN_KEY = "copilot_oauth_token"

OPENAI_MODELS = (
    ModelInfo("openai/gpt-4o", "GPT-4o", "OpenAI"),
    ModelInfo("openai/gpt-4o-mini", "GPT-4o Mini", "OpenAI"),
    ModelInfo("openai/gpt-4.1", "GPT-4.1", "OpenAI"),
)
CLAUDE_MODELS = (
    ModelInfo("claude/claude-sonnet-4-20250514", "Claude Sonnet 4", "Anthropic"),
    ModelInfo("claude/claude-3-5-haiku-20241022", "Claude Haiku 3.5", "Anthropic"),
)
OLLAMA_MODELS = (
    ModelInfo("ollama/llama3", "Llama 3", "Ollama"),
    ModelInfo("ollama/qwen2.5", "Qwen 2.5", "Ollama"),
)


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return "********"
    return f"{value[:4]}...{value[-4:]}"


class SettingsService:
    """Reads and writes the settings table and turns it into provider configs."""

    def __init__(self, store: Store, settings: Settings, token_cache: TokenCache) -> None:
        self.store = store
        self.settings = settings
        self.token_cache = token_cache

    # Key/value settings -----------------------------------------------

    def get_all(self, masked: bool = True) -> dict[str, str]:
        values: dict[str, str] = {}
        for key in SETTING_KEYS:
            value = self.store.get_setting(key)
            if value is None:
                continue
            values[key] = mask_secret(value) if masked and key in SECRET_KEYS else value
        return values

    def set(self, key: str, value: str) -> None:
        if key not in SETTING_KEYS:
            raise ConfigError(f"Unknown setting key: {key}")
        self.store.set_setting(key, value)
        if key == COPILOT_TOKEN_KEY:
            self.token_cache.clear()

    def delete(self, key: str) -> bool:
        if key not in SETTING_KEYS:
            raise ConfigError(f"Unknown setting key: {key}")
        if key == COPILOT_TOKEN_KEY:
            self.token_cache.clear()
        return self.store.delete_setting(key)

    def _value(self, key: str) -> str | None:
        value = self.store.get_setting(key)
        return value or None

    # Provider configs -------------------------------------------------

    def openai_config(self) -> OpenAIConfig:
        api_key = self._value("openai_api_key")
        if api_key is None:
            raise ConfigError("OpenAI API key not configured")
        return OpenAIConfig(api_key=api_key, base_url=self._value("openai_base_url") or self.settings.openai_base_url)

    def claude_config(self) -> ClaudeConfig:
        api_key = self._value("claude_api_key")
        if api_key is None:
            raise ConfigError("Claude API key not configured")
        return ClaudeConfig(api_key=api_key, base_url=self._value("claude_base_url") or self.settings.claude_base_url)

    def ollama_config(self) -> OllamaConfig:
        return OllamaConfig(base_url=self._value("ollama_host") or self.settings.ollama_host)

    def copilot_config(self) -> CopilotConfig:
        token = self._value(COPILOT_TOKEN_KEY)
        if token is None:
            raise ConfigError("GitHub Copilot not logged in")
        return CopilotConfig(
            oauth_token=token,
            api_base=self.settings.copilot_api_base,
            github_api_base=self.settings.github_api_base,
        )

    def resolve_provider(self, model: str) -> tuple[ProviderConfig, str]:
        """Map ``"<prefix>/<model>"`` to a provider config and the provider-local model id.

        A bare model id without a slash is treated as OpenAI.
        """
        model = model.strip()
        if not model:
            raise ConfigError("No model selected")
        prefix, sep, model_id = model.partition("/")
        if not sep:
            return self.openai_config(), model
        if not model_id:
            raise ConfigError(f"Missing model id after prefix: {model}")
        if prefix == "openai":
            return self.openai_config(), model_id
        if prefix == "claude":
            return self.claude_config(), model_id
        if prefix == "ollama":
            return self.ollama_config(), model_id
        if prefix == "copilot":
            return self.copilot_config(), model_id
        raise ConfigError(f"Unsupported model prefix: {prefix}")

    # Model catalog ----------------------------------------------------

    def available_models(self) -> list[ModelInfo]:
        models: list[ModelInfo] = []
        if self._value("openai_api_key"):
            models.extend(OPENAI_MODELS)
        if self._value("claude_api_key"):
            models.extend(CLAUDE_MODELS)
        models.extend(OLLAMA_MODELS)
        return models

    def copilot_models(self) -> list[ModelInfo]:
        return copilot.fetch_models(
            self.copilot_config(),
            token_cache=self.token_cache,
            timeout=self.settings.request_timeout,
        )

    # Copilot login ----------------------------------------------------

    def copilot_start_login(self) -> DeviceCodeResponse:
        return copilot.start_device_flow(
            client_id=self.settings.copilot_client_id,
            github_base_url=self.settings.github_base_url,
            timeout=self.settings.request_timeout,
        )

    def copilot_poll_login(self, device_code: str) -> str | None:
        token = copilot.poll_device_flow(
            device_code,
            client_id=self.settings.copilot_client_id,
            github_base_url=self.settings.github_base_url,
            timeout=self.settings.request_timeout,
        )
        if token is not None:
            logger.info("GitHub Copilot login completed")
            self.set(COPILOT_TOKEN_KEY, token)
        return token

    def copilot_is_logged_in(self) -> bool:
        return self._value(COPILOT_TOKEN_KEY) is not None

    def copilot_logout(self) -> None:
        self.delete(COPILOT_TOKEN_KEY)


__all__ = ["SETTING_KEYS", "SettingsService", "mask_secret"]
