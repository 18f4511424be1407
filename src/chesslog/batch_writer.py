"""Persist enriched game batches and their side records."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from chesslog.game_record import GameRecord
from chesslog.ports.repositories import GameRepository, QueueRepository, RatingRepository
from chesslog.rating_event import SOURCE_GAME, RatingEvent
from chesslog.utils import Now, get_logger

logger = get_logger(__name__)


def rating_event_for(record: GameRecord) -> RatingEvent | None:
    """Return the post-game rating event of a rated game, if it has one."""
    if not record.rated or record.my_rating is None or record.format is None:
        return None
    if record.end_ts is None:
        return None
    return RatingEvent(
        timestamp=record.end_ts,
        format=record.format.value,
        rating=record.my_rating,
        url=record.url,
        source=SOURCE_GAME,
    )


class BatchWriter:
    """Append game rows, rating events and callback work items.

    Store order (``end_ts`` descending) is not maintained per batch; call
    :meth:`finalize_order` once at the end of a run.
    """

    def __init__(
        self,
        games: GameRepository,
        ratings: RatingRepository,
        queue: QueueRepository,
    ) -> None:
        self._games = games
        self._ratings = ratings
        self._queue = queue

    def write(self, records: Iterable[GameRecord]) -> int:
        """Append records and return the number of game rows added.

        ``processed_at`` is stamped here, when the rows reach the store.
        """
        processed_at = Now.as_seconds()
        batch = [record.model_copy(update={"processed_at": processed_at}) for record in records]
        if not batch:
            return 0
        pending = set(self._games.insert_games(batch))
        added = []
        for record in batch:
            if record.url in pending:
                pending.discard(record.url)
                added.append(record)
        events = [event for event in map(rating_event_for, added) if event is not None]
        self._ratings.append_events(events)
        queued = self._queue.enqueue(
            (record.game_id, record.game_type, record.url)
            for record in added
            if record.game_id and record.game_type
        )
        logger.debug(
            "Wrote %s games, %s rating events, queued %s callbacks",
            len(added),
            len(events),
            queued,
        )
        return len(added)

    def finalize_order(self) -> None:
        self._games.assign_store_order()

    def patch(self, url: str, fields: Mapping[str, object]) -> bool:
        """Update only ``fields`` of the game stored under ``url``."""
        return self._games.patch_game(url, fields)
