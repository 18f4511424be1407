"""Drop games already stored or repeated within one batch."""

from __future__ import annotations

from collections.abc import Iterable

from chesslog.game_record import GameRecord
from chesslog.ports.repositories import GameRepository
from chesslog.utils import get_logger

logger = get_logger(__name__)


class DuplicateFilter:
    """Filter candidate records by their url against the store."""

    def __init__(self, games: GameRepository) -> None:
        self._games = games

    def filter(self, candidates: Iterable[GameRecord]) -> list[GameRecord]:
        """Return candidates not yet stored, keeping the first of any repeats.

        The stored url set is read once per call.
        """
        seen = self._games.fetch_urls()
        fresh: list[GameRecord] = []
        skipped = 0
        for record in candidates:
            if record.url in seen:
                skipped += 1
                continue
            seen.add(record.url)
            fresh.append(record)
        if skipped:
            logger.debug("Skipped %s duplicate games", skipped)
        return fresh
