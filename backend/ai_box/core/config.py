"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "AIBOX_"
DEFAULT_CONFIG_PATH = Path("~/.config/ai-box/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("providers", "openai", "base_url"): "openai_base_url",
    ("providers", "claude", "base_url"): "claude_base_url",
    ("providers", "ollama", "host"): "ollama_host",
    ("providers", "copilot", "api_base"): "copilot_api_base",
    ("providers", "copilot", "client_id"): "copilot_client_id",
    ("providers", "copilot", "token_refresh_margin"): "token_refresh_margin",
    ("github", "api_base"): "github_api_base",
    ("github", "base_url"): "github_base_url",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("chunking", "size"): "chunk_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("retrieval", "top_k"): "search_top_k",
    ("http", "connect_timeout"): "connect_timeout",
    ("http", "read_timeout"): "read_timeout",
    ("http", "retry_attempts"): "retry_attempts",
    ("http", "retry_backoff"): "retry_backoff",
    ("logging", "level"): "log_level",
    ("logging", "json"): "log_json",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".ai-box" / "ai-box.db")
    openai_base_url: str = "https://api.openai.com/v1"
    claude_base_url: str = "https://api.anthropic.com"
    ollama_host: str = "http://localhost:11434"
    copilot_api_base: str = "https://api.githubcopilot.com"
    copilot_client_id: str = "Iv1.b507a08c87ecfe98"
    github_api_base: str = "https://api.github.com"
    github_base_url: str = "https://github.com"
    token_refresh_margin: int = 90
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = Field(default=20, ge=1)
    chunk_size: int = Field(default=512, ge=1)
    chunk_overlap: int = Field(default=64, ge=0)
    search_top_k: int = Field(default=5, ge=1)
    connect_timeout: float = 10.0
    read_timeout: float = 120.0
    retry_attempts: int = Field(default=1, ge=1)
    retry_backoff: float = 1.0
    log_level: str = "INFO"
    log_json: bool = True

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("token_refresh_margin")
    @classmethod
    def _check_margin(cls, value: int) -> int:
        if not 60 <= value <= 120:
            raise ValueError("token_refresh_margin must be between 60 and 120 seconds")
        return value

    @field_validator("openai_base_url", "claude_base_url", "ollama_host", "copilot_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def request_timeout(self) -> tuple[float, float]:
        """(connect, read) timeout pair passed to requests."""
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with AIBOX_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
