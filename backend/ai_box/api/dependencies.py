"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from ai_box.core.config import Settings, get_settings
from ai_box.db.sqlite import SQLiteDatabase
from ai_box.db.store import Store
from ai_box.ingest.pipeline import IngestPipeline
from ai_box.llm.token_cache import TokenCache
from ai_box.retrieval import QueryService
from ai_box.services.chat import ChatService
from ai_box.services.settings import SettingsService

_DB: SQLiteDatabase | None = None
_TOKEN_CACHE: TokenCache | None = None
_SETTINGS_SERVICE: SettingsService | None = None
_CHAT_SERVICE: ChatService | None = None
_PIPELINE: IngestPipeline | None = None
_QUERY_SERVICE: QueryService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_store() -> Store:
    return Store(get_database())


def get_token_cache() -> TokenCache:
    global _TOKEN_CACHE
    if _TOKEN_CACHE is None:
        _TOKEN_CACHE = TokenCache(margin_seconds=get_app_settings().token_refresh_margin)
    return _TOKEN_CACHE


def get_settings_service() -> SettingsService:
    global _SETTINGS_SERVICE
    if _SETTINGS_SERVICE is None:
        _SETTINGS_SERVICE = SettingsService(
            store=get_store(),
            settings=get_app_settings(),
            token_cache=get_token_cache(),
        )
    return _SETTINGS_SERVICE


def get_chat_service() -> ChatService:
    global _CHAT_SERVICE
    if _CHAT_SERVICE is None:
        _CHAT_SERVICE = ChatService(
            store=get_store(),
            settings=get_app_settings(),
            settings_service=get_settings_service(),
            token_cache=get_token_cache(),
        )
    return _CHAT_SERVICE


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IngestPipeline(store=get_store(), settings=get_app_settings())
    return _PIPELINE


def get_query_service() -> QueryService:
    global _QUERY_SERVICE
    if _QUERY_SERVICE is None:
        _QUERY_SERVICE = QueryService(store=get_store(), settings=get_app_settings())
    return _QUERY_SERVICE


def reset_state() -> None:
    """Drop every cached singleton; the database connection is closed."""
    global _DB, _TOKEN_CACHE, _SETTINGS_SERVICE, _CHAT_SERVICE, _PIPELINE, _QUERY_SERVICE
    if _DB is not None:
        _DB.close()
    get_settings.cache_clear()
    get_app_settings.cache_clear()
    _DB = None
    _TOKEN_CACHE = None
    _SETTINGS_SERVICE = None
    _CHAT_SERVICE = None
    _PIPELINE = None
    _QUERY_SERVICE = None


__all__ = [
    "get_app_settings",
    "get_database",
    "get_store",
    "get_token_cache",
    "get_settings_service",
    "get_chat_service",
    "get_ingest_pipeline",
    "get_query_service",
    "reset_state",
]
