"""Rating observations used for nearest-neighbour lookups."""

from __future__ import annotations

from dataclasses import dataclass

SOURCE_GAME = "game"
SOURCE_PROFILE_STATS = "profile_stats"


@dataclass(frozen=True, slots=True)
class RatingEvent:
    """A rating value observed for one format at one instant.

    Attributes:
        timestamp: Epoch seconds of the observation.
        format: Game format the rating belongs to.
        rating: Rating value.
        url: Game url when the event came from a game row.
        source: ``game`` or ``profile_stats``.
    """

    timestamp: int
    format: str
    rating: int
    url: str | None = None
    source: str = SOURCE_GAME
