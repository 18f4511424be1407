# pylint: disable=duplicate-code,R0801
"""Custom error types used in chesslog."""

import requests


class ChesscomApiError(requests.HTTPError):
    """Base class for chess.com API failures."""


class RateLimitError(ChesscomApiError):
    """HTTP rate limit error (429)."""


class ServerError(ChesscomApiError):
    """Transient upstream failure (5xx)."""


class PermanentClientError(ChesscomApiError):
    """Client error (4xx other than 429); retrying will not help."""


class RetriesExhaustedError(ChesscomApiError):
    """Retries ran out; the request may succeed on a later invocation."""

    def __init__(self, message: str, *, last_error: BaseException | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.last_error = last_error


class OperationLockedError(RuntimeError):
    """The named operation lock is held by another owner."""
