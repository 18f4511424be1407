"""Nearest-in-time rating lookup per format."""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable

from chesslog.batch_writer import rating_event_for
from chesslog.db.repositories import Repositories
from chesslog.rating_event import SOURCE_GAME, RatingEvent
from chesslog.utils import get_logger

logger = get_logger(__name__)


class RatingResolver:
    """Resolve the rating closest in time to a timestamp.

    Events are kept per format, sorted ascending by timestamp. When the
    events just before and just after a timestamp are equally distant, the
    later one wins.
    """

    def __init__(self, events: Iterable[RatingEvent]) -> None:
        by_format: dict[str, list[RatingEvent]] = {}
        for event in events:
            by_format.setdefault(event.format, []).append(event)
        self._events = {
            fmt: sorted(items, key=lambda event: event.timestamp)
            for fmt, items in by_format.items()
        }
        self._timestamps = {
            fmt: [event.timestamp for event in items] for fmt, items in self._events.items()
        }

    @classmethod
    def from_repositories(cls, repositories: Repositories) -> RatingResolver:
        return cls(repositories.ratings.fetch_events())

    @property
    def formats(self) -> list[str]:
        return sorted(self._events)

    def first_timestamp(self) -> int | None:
        firsts = [timestamps[0] for timestamps in self._timestamps.values() if timestamps]
        return min(firsts) if firsts else None

    def resolve(self, fmt: str, timestamp: int) -> int | None:
        """Return the rating of ``fmt`` nearest to ``timestamp``, or None."""
        event = self.nearest(fmt, timestamp)
        return event.rating if event is not None else None

    def nearest(self, fmt: str, timestamp: int) -> RatingEvent | None:
        timestamps = self._timestamps.get(str(fmt))
        if not timestamps:
            return None
        events = self._events[str(fmt)]
        index = bisect_left(timestamps, timestamp)
        best: RatingEvent | None = None
        best_distance: int | None = None
        for candidate in (index, index - 1):
            if not 0 <= candidate < len(events):
                continue
            distance = abs(timestamps[candidate] - timestamp)
            if best_distance is None or distance < best_distance:
                best = events[candidate]
                best_distance = distance
        return best


def rebuild_game_rating_events(repositories: Repositories) -> int:
    """Regenerate game-sourced rating events from the stored games."""
    removed = repositories.ratings.delete_source(SOURCE_GAME)
    events = [
        event
        for event in map(rating_event_for, repositories.games.fetch_games())
        if event is not None
    ]
    added = repositories.ratings.append_events(events)
    logger.info("Rebuilt game rating events: removed=%s added=%s", removed, added)
    return added
