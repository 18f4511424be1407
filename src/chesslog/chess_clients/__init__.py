"""chess.com API client, rate limiting, and retry policy."""

from chesslog.chess_clients.chesscom_client import (
    ChesscomClient,
    ChesscomClientContext,
    build_client,
)
from chesslog.chess_clients.rate_limiter import MinIntervalPacer, SlidingWindowRateLimiter
from chesslog.chess_clients.retry_policy import RetryPolicy

__all__ = [
    "ChesscomClient",
    "ChesscomClientContext",
    "MinIntervalPacer",
    "RetryPolicy",
    "SlidingWindowRateLimiter",
    "build_client",
]
