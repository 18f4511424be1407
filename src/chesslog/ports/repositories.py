"""Repository port interfaces for database access boundaries."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol

from chesslog.game_record import GameRecord
from chesslog.rating_event import RatingEvent


class GameRepository(Protocol):
    """Repository interface for enriched game persistence and lookup."""

    def fetch_urls(self) -> set[str]:
        """Return every stored game url."""

    def insert_games(self, records: Iterable[GameRecord]) -> list[str]:
        """Append game rows and return the urls added."""

    def patch_game(self, url: str, fields: Mapping[str, object]) -> bool:
        """Update the supplied columns of one game."""

    def assign_store_order(self) -> None:
        """Re-establish end-time descending store order."""

    def fetch_games(self, *, end_dates: Iterable[str] | None = None) -> list[GameRecord]:
        """Return stored games, optionally restricted to end dates."""

    def fetch_max_end_ts(self) -> int | None:
        """Return the newest stored end timestamp."""


class RatingRepository(Protocol):
    """Repository interface for the rating event log."""

    def append_events(self, events: Iterable[RatingEvent]) -> int:
        """Append events and return the count."""

    def fetch_events(self, fmt: str | None = None) -> list[RatingEvent]:
        """Return events ordered by format and timestamp."""

    def delete_source(self, source: str) -> int:
        """Delete events of one source and return the count."""


class QueueRepository(Protocol):
    """Repository interface for the callback work queue."""

    def enqueue(self, items: Iterable[tuple[str, str, str]]) -> int:
        """Queue ``(game_id, game_type, url)`` items."""

    def fetch_pending(self, limit: int) -> list[dict[str, object]]:
        """Return pending items, oldest first."""

    def mark_completed(self, game_id: str) -> None:
        """Mark an item completed."""

    def record_failure(self, game_id: str, error: str, max_attempts: int) -> str:
        """Record a failed attempt and return the resulting status."""

    def count_by_status(self) -> dict[str, int]:
        """Return item counts keyed by status."""
