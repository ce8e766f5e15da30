"""Error taxonomy shared by providers, retrieval and the HTTP layer."""

from __future__ import annotations


class AIBoxError(Exception):
    """Base class for all errors raised by AI Box."""

    kind = "error"

    @property
    def retryable(self) -> bool:
        return False


class TransportError(AIBoxError):
    """Connection failure or timeout talking to a remote service."""

    kind = "transport"

    @property
    def retryable(self) -> bool:
        return True


class ApiError(AIBoxError):
    """Remote service answered with a non-success status."""

    kind = "api"

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"API error: {status} - {body}")
        self.status = status
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500


class ParseError(AIBoxError):
    """Response body was not valid JSON or had an unexpected shape."""

    kind = "parse"


class ConfigError(AIBoxError):
    """Missing credential, unknown setting or unsupported model prefix."""

    kind = "config"


class UnsupportedInputError(AIBoxError):
    """Input that cannot be processed: empty document, bad file type, bad chunk window."""

    kind = "unsupported_input"


class NotFoundError(AIBoxError):
    """Referenced conversation or document does not exist."""

    kind = "not_found"


__all__ = [
    "AIBoxError",
    "TransportError",
    "ApiError",
    "ParseError",
    "ConfigError",
    "UnsupportedInputError",
    "NotFoundError",
]
