"""Snapshot current per-format ratings from the profile endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from chesslog.db.repositories import Repositories
from chesslog.game_format import STATS_KEY_FORMATS
from chesslog.rating_event import SOURCE_PROFILE_STATS, RatingEvent
from chesslog.utils import Now, get_logger, to_int

logger = get_logger(__name__)

OPERATION = "profile_stats"
PROFILE_KEY = "profile"
STATS_KEY = "profile_stats"


class ProfileSource(Protocol):
    def fetch_profile(self) -> dict: ...

    def fetch_stats(self) -> dict: ...


def snapshot_events(stats: Mapping[str, object], timestamp: int) -> list[RatingEvent]:
    """Return one event per known format present in a ``/stats`` document."""
    events = []
    for key, fmt in STATS_KEY_FORMATS.items():
        section = stats.get(key)
        if not isinstance(section, Mapping):
            continue
        last = section.get("last")
        rating = to_int(last.get("rating")) if isinstance(last, Mapping) else None
        if rating is None:
            continue
        events.append(
            RatingEvent(
                timestamp=timestamp,
                format=fmt.value,
                rating=rating,
                source=SOURCE_PROFILE_STATS,
            )
        )
    return events


def update_profile_stats(
    client: ProfileSource,
    repositories: Repositories,
    *,
    lock_ttl_s: float = 600.0,
    timestamp: int | None = None,
) -> dict[str, object]:
    """Append profile-stats rating events and store the raw documents.

    All events of one snapshot share the same timestamp.
    """
    with repositories.lock(OPERATION, lock_ttl_s):
        stats = client.fetch_stats()
        profile = client.fetch_profile()
        snapshot_ts = timestamp if timestamp is not None else Now.as_seconds()
        events = snapshot_events(stats, snapshot_ts)
        repositories.ratings.append_events(events)
        repositories.kv.set(STATS_KEY, stats)
        repositories.kv.set(PROFILE_KEY, profile)
    logger.info("Profile stats: %s rating snapshots at %s", len(events), snapshot_ts)
    return {
        "snapshot_ts": snapshot_ts,
        "events": len(events),
        "formats": [event.format for event in events],
    }
