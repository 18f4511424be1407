"""Drain the per-game callback queue into game rows."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

from chesslog.batch_writer import BatchWriter
from chesslog.config import Settings
from chesslog.db.duckdb_queue_repository import QueueStatus
from chesslog.db.repositories import Repositories
from chesslog.deadline import Deadline
from chesslog.game_record import GameRecord
from chesslog.utils import Now, get_logger, normalize_string, to_float, to_int

logger = get_logger(__name__)

OPERATION = "derive"
_TOTAL_KEYS = ("processed", "completed", "retried", "failed")


class CallbackSource(Protocol):
    def fetch_callback(self, game_type: str, game_id: str) -> dict: ...


@dataclass(slots=True)
class CallbackRunSummary:
    processed: int
    completed: int
    retried: int
    failed: int
    remaining: int
    duration_s: float
    totals: dict[str, int]

    def as_dict(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "completed": self.completed,
            "retried": self.retried,
            "failed": self.failed,
            "remaining": self.remaining,
            "duration_s": self.duration_s,
            "totals": dict(self.totals),
        }


def callback_fields(payload: Mapping[str, object], record: GameRecord) -> dict[str, object]:
    """Derive patchable game fields from a callback document.

    Args:
        payload: Callback JSON with ``game`` and ``players`` sections.
        record: Stored game the callback belongs to.

    Returns:
        Mapping of game column to value; unknown values are omitted.
    """

    game = _mapping(payload.get("game"))
    players = _players_by_color(_mapping(payload.get("players")))
    fields: dict[str, object] = {}
    for color in ("white", "black"):
        accuracy = to_float(players.get(color, {}).get("accuracy"))
        if accuracy is not None:
            fields[f"{color}_accuracy"] = accuracy
    my_color = record.my_color
    if my_color not in ("white", "black"):
        return fields
    their_color = "black" if my_color == "white" else "white"
    mine = players.get(my_color, {})
    theirs = players.get(their_color, {})
    my_change = to_int(game.get(f"ratingChange{my_color.capitalize()}"))
    their_change = to_int(game.get(f"ratingChange{their_color.capitalize()}"))
    my_post = record.my_rating if record.my_rating is not None else to_int(mine.get("rating"))
    their_post = (
        record.opponent_rating
        if record.opponent_rating is not None
        else to_int(theirs.get("rating"))
    )
    if my_change is not None:
        fields["my_rating_change"] = my_change
        if my_post is not None:
            fields["my_pregame_rating"] = my_post - my_change
    if their_change is not None:
        fields["opponent_rating_change"] = their_change
        if their_post is not None:
            fields["opponent_pregame_rating"] = their_post - their_change
    if f"{my_color}_accuracy" in fields:
        fields["my_accuracy"] = fields[f"{my_color}_accuracy"]
    if f"{their_color}_accuracy" in fields:
        fields["opponent_accuracy"] = fields[f"{their_color}_accuracy"]
    country = _text(theirs.get("countryName"))
    if country is not None:
        fields["opponent_country"] = country
    membership = _text(theirs.get("membershipLevel"))
    if membership is not None:
        fields["opponent_membership"] = membership
    return fields


def requeue_failed(repositories: Repositories, *, lock_ttl_s: float = 600.0) -> dict[str, object]:
    """Move every failed callback item back to pending with zero attempts."""
    with repositories.lock(OPERATION, lock_ttl_s):
        count = repositories.queue.requeue_failed()
        totals = repositories.queue.count_by_status()
    logger.info("Requeued %s failed callback items", count)
    return {"requeued": count, "queue": totals}


class CallbackEnricher:
    """Process pending callback items, one isolated failure at a time.

    Items move ``pending -> completed`` on success. A failure bumps the
    attempt count and leaves the item pending until ``callback_max_attempts``
    is reached, after which it is ``failed``.
    """

    def __init__(
        self,
        client: CallbackSource,
        repositories: Repositories,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._repos = repositories
        self._settings = settings
        self._clock = clock
        self._sleep = sleep
        self._writer = BatchWriter(repositories.games, repositories.ratings, repositories.queue)

    def process(self, limit: int | None = None) -> CallbackRunSummary:
        """Process up to ``limit`` pending items within the job time budget."""
        limit = limit if limit is not None else self._settings.callback_batch_size
        deadline = Deadline(self._settings.job_time_budget_s, self._clock)
        counts = dict.fromkeys(_TOTAL_KEYS, 0)
        with self._repos.lock(OPERATION, self._settings.lock_ttl_s):
            items = self._repos.queue.fetch_pending(limit)
            for index, item in enumerate(items):
                if deadline.expired():
                    logger.info("Callback time budget reached after %s items", index)
                    break
                if index:
                    self._sleep(self._settings.callback_delay_s)
                counts["processed"] += 1
                outcome = self._process_item(item)
                counts[outcome] += 1
            remaining = self._repos.queue.count_by_status().get(QueueStatus.PENDING.value, 0)
            totals = self._update_totals(counts, remaining)
        summary = CallbackRunSummary(
            processed=counts["processed"],
            completed=counts["completed"],
            retried=counts["retried"],
            failed=counts["failed"],
            remaining=remaining,
            duration_s=round(deadline.elapsed(), 3),
            totals=totals,
        )
        logger.info(
            "Callback queue: processed=%s completed=%s retried=%s failed=%s remaining=%s "
            "duration_s=%.1f",
            summary.processed,
            summary.completed,
            summary.retried,
            summary.failed,
            summary.remaining,
            summary.duration_s,
        )
        return summary

    def _process_item(self, item: Mapping[str, object]) -> str:
        game_id = str(item["game_id"])
        try:
            record = self._repos.games.fetch_game(str(item["url"]))
            if record is None:
                raise LookupError(f"No stored game for {item['url']}")
            payload = self._client.fetch_callback(str(item["game_type"]), game_id)
            fields = callback_fields(payload, record)
            fields["callback_enriched_at"] = Now.as_seconds()
            self._writer.patch(record.url, fields)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            status = self._repos.queue.record_failure(
                game_id,
                f"{type(exc).__name__}: {exc}",
                self._settings.callback_max_attempts,
            )
            logger.warning("Callback for game %s failed (%s): %s", game_id, status, exc)
            return "failed" if status == QueueStatus.FAILED else "retried"
        self._repos.queue.mark_completed(game_id)
        return "completed"

    def _update_totals(self, counts: Mapping[str, int], remaining: int) -> dict[str, int]:
        stored = self._repos.checkpoints.load(OPERATION) or {}
        totals = {key: int(stored.get(key, 0)) + counts[key] for key in _TOTAL_KEYS}
        if remaining:
            self._repos.checkpoints.save(OPERATION, totals)
        else:
            self._repos.checkpoints.clear(OPERATION)
        return totals


def _players_by_color(players: Mapping[str, object]) -> dict[str, Mapping[str, object]]:
    by_color: dict[str, Mapping[str, object]] = {}
    for slot in ("top", "bottom"):
        player = _mapping(players.get(slot))
        color = normalize_string(player.get("color"))
        if color in ("white", "black"):
            by_color[color] = player
    return by_color


def _mapping(value: object) -> Mapping[str, object]:
    return value if isinstance(value, Mapping) else {}


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
