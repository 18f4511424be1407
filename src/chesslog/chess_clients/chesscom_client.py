from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import cast

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from chesslog.chess_clients.rate_limiter import MinIntervalPacer, SlidingWindowRateLimiter
from chesslog.chess_clients.retry_policy import RetryPolicy
from chesslog.config import Settings
from chesslog.errors import (
    PermanentClientError,
    RateLimitError,
    RetriesExhaustedError,
    ServerError,
)
from chesslog.utils import Logger

logger = Logger(__name__)

PROFILE_PATH = "/player/{username}"
STATS_PATH = "/player/{username}/stats"
ARCHIVES_PATH = "/player/{username}/games/archives"
CALLBACK_PATH = "/callback/{game_type}/game/{game_id}"
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR = 500
HTTP_STATUS_CLIENT_ERROR = 400

__all__ = [
    "ChesscomClient",
    "ChesscomClientContext",
    "build_client",
]


@dataclass(slots=True)
class ChesscomClientContext:
    """Context for chess.com API interactions.

    Attributes:
        settings: Application settings used for API calls.
        logger: Logger for client-specific messages.
        limiter: Shared sliding-window limiter for the public API.
        callback_pacer: Separate pacing for the per-game callback backend.
        clock: Monotonic clock shared by the default limiters.
        sleep: Sleep used between retries and by the default limiters.
    """

    settings: Settings
    logger: logging.Logger
    limiter: SlidingWindowRateLimiter | None = None
    callback_pacer: MinIntervalPacer | None = None
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep


class ChesscomClient:
    """Rate-limited, retrying client for the chess.com public API."""

    def __init__(self, context: ChesscomClientContext) -> None:
        """Initialize the client, building default limiters from settings.

        Args:
            context: Client context containing settings and logger.
        """

        api = context.settings.api
        if context.limiter is None:
            context.limiter = SlidingWindowRateLimiter(
                max_requests=api.rate_limit_max_requests,
                window_s=api.rate_limit_window_s,
                margin_s=api.rate_limit_margin_s,
                clock=context.clock,
                sleep=context.sleep,
            )
        if context.callback_pacer is None:
            context.callback_pacer = MinIntervalPacer(
                interval_s=api.callback_min_interval_s,
                clock=context.clock,
                sleep=context.sleep,
            )
        self._context = context
        self.retry_policy = RetryPolicy(
            max_retries=api.max_retries,
            base_delay_s=api.retry_base_delay_s,
            default_retry_after_s=api.default_retry_after_s,
        )

    @property
    def settings(self) -> Settings:
        return self._context.settings

    @property
    def logger(self) -> logging.Logger:
        return self._context.logger

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return cast(SlidingWindowRateLimiter, self._context.limiter)

    def get(self, url: str) -> dict:
        """Fetch a JSON document with rate limiting and retries.

        Args:
            url: Absolute endpoint url.

        Returns:
            Parsed JSON body.

        Raises:
            PermanentClientError: On a 4xx other than 429 (never retried).
            RetriesExhaustedError: When 429/5xx/transport failures outlast the retries.
        """

        retrying = Retrying(
            retry=retry_if_exception(self.retry_policy.is_retryable),
            stop=stop_after_attempt(self.retry_policy.max_attempts),
            wait=self._wait_for,
            sleep=self._context.sleep,
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            retry_error_callback=self._raise_exhausted,
        )
        return retrying(self._get_once, url)

    def fetch_profile(self) -> dict:
        """Return the player profile document."""
        return self.get(self._url(PROFILE_PATH))

    def fetch_stats(self) -> dict:
        """Return the per-format rating snapshot document."""
        return self.get(self._url(STATS_PATH))

    def fetch_archive_index(self) -> list[str]:
        """Return monthly archive urls, oldest first."""
        payload = self.get(self._url(ARCHIVES_PATH))
        archives = [str(url) for url in payload.get("archives", []) if url]
        if not archives:
            self.logger.info("No archives returned for %s", self.settings.username)
        return archives

    def fetch_archive(self, archive_url: str) -> list[dict]:
        """Return the raw games of one monthly archive."""
        payload = self.get(archive_url)
        return [game for game in payload.get("games", []) if isinstance(game, dict)]

    def fetch_callback(self, game_type: str, game_id: str) -> dict:
        """Fetch extended per-game data from the callback backend.

        This endpoint lives on a different host with its own limits, so it
        bypasses the shared limiter, is paced on its own, and is attempted
        once; callers own the retry decision.
        """

        base = self.settings.api.callback_base_url.rstrip("/")
        url = base + CALLBACK_PATH.format(game_type=game_type, game_id=game_id)
        cast(MinIntervalPacer, self._context.callback_pacer).wait()
        response = self._request(url)
        return _parse_response(response, url)

    def _get_once(self, url: str) -> dict:
        self.limiter.acquire()
        response = self._request(url)
        payload = _parse_response(response, url)
        self.limiter.record()
        return payload

    def _request(self, url: str) -> requests.Response:
        return requests.get(
            url,
            headers=_request_headers(self.settings.api.user_agent),
            timeout=self.settings.api.timeout_s,
        )

    def _url(self, path: str) -> str:
        username = self.settings.username.strip().lower()
        return self.settings.api.base_url.rstrip("/") + path.format(username=username)

    def _wait_for(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return self.retry_policy.wait_seconds(retry_state.attempt_number - 1, error)

    def _raise_exhausted(self, retry_state: RetryCallState) -> dict:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        url = retry_state.args[0] if retry_state.args else "<unknown>"
        message = f"Giving up on {url} after {retry_state.attempt_number} attempts: {error}"
        raise RetriesExhaustedError(
            message,
            last_error=error,
            response=getattr(error, "response", None),
        ) from error


def _parse_response(response: requests.Response, url: str) -> dict:
    """Map an HTTP response to its JSON body or a typed error.

    Args:
        response: HTTP response.
        url: Requested url, for error messages.

    Returns:
        Parsed JSON body.
    """

    status = response.status_code
    if status == HTTP_STATUS_TOO_MANY_REQUESTS:
        raise RateLimitError(f"chess.com rate limit exceeded for {url}", response=response)
    if status >= HTTP_STATUS_SERVER_ERROR:
        raise ServerError(f"{status} server error for {url}", response=response)
    if status >= HTTP_STATUS_CLIENT_ERROR:
        raise PermanentClientError(f"{status} client error for {url}", response=response)
    payload = response.json()
    return payload if isinstance(payload, dict) else {}


def _request_headers(user_agent: str) -> dict[str, str]:
    """Build request headers.

    Args:
        user_agent: Identifying User-Agent string.

    Returns:
        Headers dict for the request.
    """

    return {"User-Agent": user_agent, "Accept": "application/json"}


def build_client(
    settings: Settings,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ChesscomClient:
    """Build a client for the given settings using the module logger."""
    return ChesscomClient(
        ChesscomClientContext(settings=settings, logger=logger, clock=clock, sleep=sleep)
    )
