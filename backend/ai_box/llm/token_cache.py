"""Process-wide cache for the short-lived Copilot session token."""

from __future__ import annotations

import threading
import time
from typing import Callable

from ai_box.core.errors import ConfigError
from ai_box.core.logging import get_logger
from ai_box.llm.types import CachedToken

logger = get_logger(__name__)

DEFAULT_MARGIN_SECONDS = 90


class TokenCache:
    """Holds at most one exchanged token, refreshed shortly before it expires.

    Create one per process and share it between requests. The lock covers
    only the in-memory check and write, never the exchange itself, so two
    threads that both find the token stale may each exchange; the later
    write wins.
    """

    def __init__(
        self,
        margin_seconds: int = DEFAULT_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not 60 <= margin_seconds <= 120:
            raise ConfigError("margin_seconds must be between 60 and 120")
        self.margin_seconds = margin_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._cached: CachedToken | None = None

    def peek(self) -> CachedToken | None:
        with self._lock:
            return self._cached

    def is_fresh(self, cached: CachedToken | None) -> bool:
        if cached is None:
            return False
        return self._clock() + self.margin_seconds < cached.expires_at

    def store(self, token: CachedToken) -> None:
        with self._lock:
            self._cached = token

    def clear(self) -> None:
        with self._lock:
            self._cached = None

    def get_token(self, exchange: Callable[[], CachedToken]) -> str:
        """Return a fresh token, calling ``exchange`` when the cache is empty or stale."""
        cached = self.peek()
        if self.is_fresh(cached):
            return cached.token
        logger.info("Exchanging Copilot session token")
        refreshed = exchange()
        self.store(refreshed)
        return refreshed.token


__all__ = ["TokenCache", "DEFAULT_MARGIN_SECONDS"]
