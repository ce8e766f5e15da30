"""Caller-side retry policy for provider calls."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from ai_box.core.errors import AIBoxError
from ai_box.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def call_with_retry(
    fn: Callable[[], T],
    attempts: int = 1,
    backoff: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn``, retrying retryable errors with exponential backoff.

    Only transport failures, 429 and 5xx answers are retried; everything else
    propagates on the first attempt.
    """
    attempt = 1
    while True:
        try:
            return fn()
        except AIBoxError as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = backoff * (2 ** (attempt - 1))
            logger.warning("Attempt %d/%d failed (%s); retrying in %.1fs", attempt, attempts, exc, delay)
            sleep(delay)
            attempt += 1


__all__ = ["call_with_retry"]
