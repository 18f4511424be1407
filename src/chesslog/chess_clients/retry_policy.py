"""Retry/backoff policy for chess.com requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import requests

from chesslog.errors import RateLimitError, ServerError

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    RateLimitError,
    ServerError,
    requests.ConnectionError,
    requests.Timeout,
)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt count and delay function for retryable failures.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay_s: Base for exponential backoff on 5xx and transport errors.
        default_retry_after_s: Wait used for 429 responses without Retry-After.
    """

    max_retries: int = 3
    base_delay_s: float = 1.0
    default_retry_after_s: float = 60.0

    @property
    def max_attempts(self) -> int:
        return max(self.max_retries, 0) + 1

    def is_retryable(self, error: BaseException | None) -> bool:
        return isinstance(error, RETRYABLE_ERRORS)

    def wait_seconds(self, attempt: int, error: BaseException | None) -> float:
        """Return the delay before retry number ``attempt`` (0-based).

        Args:
            attempt: Number of failed attempts so far minus one.
            error: The error raised by the failed attempt.

        Returns:
            Seconds to sleep.
        """

        if isinstance(error, RateLimitError):
            response = error.response
            header = response.headers.get("Retry-After") if response is not None else None
            retry_after = _parse_retry_after(header)
            return self.default_retry_after_s if retry_after is None else retry_after
        return self.base_delay_s * (2**attempt)


def _parse_retry_after(value: str | None) -> float | None:
    """Parse Retry-After header values.

    Args:
        value: Retry-After header value.

    Returns:
        Number of seconds to wait, or None.
    """

    if not value:
        return None
    seconds = _parse_retry_after_seconds(value)
    if seconds is not None:
        return seconds
    return _parse_retry_after_date(value)


def _parse_retry_after_seconds(value: str) -> float | None:
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(seconds, 0.0)


def _parse_retry_after_date(value: str) -> float | None:
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = (dt - datetime.now(UTC)).total_seconds()
    return max(delta, 0.0)
