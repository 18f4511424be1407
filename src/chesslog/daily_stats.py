"""Per-day aggregate statistics with full and incremental rebuilds."""

from __future__ import annotations

import datetime
import math
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from chesslog.config import Settings
from chesslog.db.repositories import Repositories
from chesslog.deadline import Deadline
from chesslog.game_record import GameRecord
from chesslog.rating_resolver import RatingResolver
from chesslog.utils import Now, get_logger

logger = get_logger(__name__)

OPERATION = "daily_stats"
WATERMARK_KEY = "daily_stats:ingest_watermark"
UNKNOWN_FORMAT = "unknown"
PERFORMANCE_CLAMP = 400


def performance_rating(avg_opponent_rating: float | None, score: float | None) -> int | None:
    """Return the Elo performance for a score fraction against an average opponent.

    >>> performance_rating(1400, 1.0)
    1800
    >>> performance_rating(1600, 0.5)
    1600
    """
    if avg_opponent_rating is None or score is None:
        return None
    if score >= 1:
        return round(avg_opponent_rating + PERFORMANCE_CLAMP)
    if score <= 0:
        return round(avg_opponent_rating - PERFORMANCE_CLAMP)
    return round(avg_opponent_rating + 400 * math.log10(score / (1 - score)))


def end_of_day_ts(day: datetime.date, timezone: str = "UTC") -> int:
    """Return the last second of ``day`` in ``timezone`` as epoch seconds."""
    next_midnight = datetime.datetime.combine(
        day + datetime.timedelta(days=1),
        datetime.time.min,
        tzinfo=ZoneInfo(timezone),
    )
    return int(next_midnight.timestamp()) - 1


def summarize_games(
    games: Sequence[GameRecord],
    *,
    resolver: RatingResolver | None = None,
    fmt: str | None = None,
    day: datetime.date | None = None,
    timezone: str = "UTC",
) -> dict[str, object]:
    """Aggregate one group of games played on the same day.

    Args:
        games: Games of the group, in any order.
        resolver: Rating history used for start/end ratings.
        fmt: Format of the group; start/end ratings need it.
        day: Date of the group; start/end ratings need it.
        timezone: Timezone defining day boundaries.

    Returns:
        Counts, time totals, opponent average, streaks, performance rating
        and, when resolvable, the rating at the start and end of the day.
    """

    ordered = sorted(games, key=lambda game: (game.end_ts or 0, game.url))
    outcomes = [game.my_outcome for game in ordered if game.my_outcome is not None]
    durations = [game.duration_s for game in ordered if game.duration_s is not None]
    opponents = [
        rating
        for rating in (_opponent_rating(game) for game in ordered)
        if rating is not None
    ]
    avg_opponent = sum(opponents) / len(opponents) if opponents else None
    score = sum(outcomes) / len(outcomes) if outcomes else None
    summary: dict[str, object] = {
        "games": len(ordered),
        "wins": sum(1 for outcome in outcomes if outcome == 1),
        "draws": sum(1 for outcome in outcomes if outcome == 0.5),
        "losses": sum(1 for outcome in outcomes if outcome == 0),
        "time_s": round(sum(durations), 1),
        "avg_time_s": round(sum(durations) / len(durations), 1) if durations else None,
        "avg_opponent_rating": round(avg_opponent, 1) if avg_opponent is not None else None,
        "longest_win_streak": _longest_streak(outcomes, 1.0),
        "longest_loss_streak": _longest_streak(outcomes, 0.0),
        "performance_rating": performance_rating(avg_opponent, score),
    }
    if resolver is not None and fmt is not None and day is not None:
        previous_day = day - datetime.timedelta(days=1)
        rating_start = resolver.resolve(fmt, end_of_day_ts(previous_day, timezone))
        rating_end = resolver.resolve(fmt, end_of_day_ts(day, timezone))
        summary["rating_start"] = rating_start
        summary["rating_end"] = rating_end
        summary["rating_change"] = (
            rating_end - rating_start
            if rating_start is not None and rating_end is not None
            else None
        )
    return summary


def _opponent_rating(game: GameRecord) -> int | None:
    if game.opponent_pregame_rating is not None:
        return game.opponent_pregame_rating
    return game.opponent_rating


def _longest_streak(outcomes: Sequence[float], target: float) -> int:
    longest = current = 0
    for outcome in outcomes:
        current = current + 1 if outcome == target else 0
        longest = max(longest, current)
    return longest


def build_daily_row(
    stat_date: str,
    games: Sequence[GameRecord],
    resolver: RatingResolver,
    timezone: str = "UTC",
) -> dict[str, object]:
    """Build the ``daily_stats`` row for one date: totals plus per-format groups."""
    day = datetime.date.fromisoformat(stat_date)
    by_format: dict[str, list[GameRecord]] = {}
    for game in games:
        key = game.format.value if game.format is not None else UNKNOWN_FORMAT
        by_format.setdefault(key, []).append(game)
    totals = summarize_games(games)
    formats = {
        fmt: summarize_games(
            group,
            resolver=resolver if fmt != UNKNOWN_FORMAT else None,
            fmt=fmt,
            day=day,
            timezone=timezone,
        )
        for fmt, group in sorted(by_format.items())
    }
    return {
        "stat_date": stat_date,
        "games": totals["games"],
        "wins": totals["wins"],
        "draws": totals["draws"],
        "losses": totals["losses"],
        "time_s": totals["time_s"],
        "performance_rating": totals["performance_rating"],
        "formats": formats,
        "updated_at": Now.as_seconds(),
    }


@dataclass(slots=True)
class DailyStatsSummary:
    mode: str
    dates_computed: int
    dates_remaining: int
    complete: bool
    duration_s: float

    def as_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode,
            "dates_computed": self.dates_computed,
            "dates_remaining": self.dates_remaining,
            "complete": self.complete,
            "duration_s": self.duration_s,
        }


class DailyStatsAggregator:
    """Maintain one ``daily_stats`` row per date that has games.

    A run works through a list of dates persisted in the checkpoint, so an
    invocation stopped by the time budget continues with the remaining
    dates next time.
    """

    def __init__(
        self,
        repositories: Repositories,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], datetime.date] | None = None,
    ) -> None:
        self._repos = repositories
        self._settings = settings
        self._clock = clock
        self._today = today or self._local_today

    def rebuild(self) -> DailyStatsSummary:
        """Recompute every date that has games."""
        return self._run("rebuild", self._plan_rebuild)

    def update(self) -> DailyStatsSummary:
        """Recompute affected dates, or everything when the table is empty."""
        if self._repos.daily_stats.count_rows() == 0 and not self._repos.checkpoints.load(OPERATION):
            logger.info("daily_stats is empty; running a full rebuild")
            return self.rebuild()
        return self._run("update", self._plan_update)

    def affected_dates(self, watermark: int | None) -> list[str]:
        """Dates of games ingested after ``watermark`` plus the trailing safety window.

        ``watermark`` is an ``ingest_seq``; None selects every date.
        """
        games = self._repos.games
        dates = (
            set(games.fetch_all_end_dates())
            if watermark is None
            else games.fetch_end_dates_ingested_since(watermark)
        )
        today = self._today()
        for offset in range(self._settings.daily_stats_safety_days):
            dates.add((today - datetime.timedelta(days=offset)).isoformat())
        return sorted(dates)

    def _plan_rebuild(self) -> tuple[list[str], int | None]:
        return self._repos.games.fetch_all_end_dates(), self._current_watermark()

    def _plan_update(self) -> tuple[list[str], int | None]:
        stored = self._repos.kv.get(WATERMARK_KEY)
        watermark = int(stored) if isinstance(stored, int) else None
        return self.affected_dates(watermark), self._current_watermark()

    def _run(
        self,
        mode: str,
        plan: Callable[[], tuple[list[str], int | None]],
    ) -> DailyStatsSummary:
        deadline = Deadline(self._settings.job_time_budget_s, self._clock)
        with self._repos.lock(OPERATION, self._settings.lock_ttl_s):
            checkpoint = self._repos.checkpoints.load(OPERATION)
            if checkpoint and isinstance(checkpoint.get("dates"), list):
                dates = [str(value) for value in checkpoint["dates"]]
                offset = int(checkpoint.get("offset", 0))
                watermark = checkpoint.get("watermark")
                mode = str(checkpoint.get("mode", mode))
                logger.info("Resuming daily stats %s at %s/%s", mode, offset, len(dates))
            else:
                dates, watermark = plan()
                offset = 0
            resolver = RatingResolver.from_repositories(self._repos)
            start_offset = offset
            while offset < len(dates):
                if deadline.expired():
                    break
                self._compute_dates(dates[offset : offset + 1], resolver)
                offset += 1
            complete = offset >= len(dates)
            if complete:
                self._repos.checkpoints.clear(OPERATION)
                if watermark is not None:
                    self._repos.kv.set(WATERMARK_KEY, watermark)
            else:
                self._repos.checkpoints.save(
                    OPERATION,
                    {"mode": mode, "dates": dates, "offset": offset, "watermark": watermark},
                )
        summary = DailyStatsSummary(
            mode=mode,
            dates_computed=offset - start_offset,
            dates_remaining=len(dates) - offset,
            complete=complete,
            duration_s=round(deadline.elapsed(), 3),
        )
        logger.info(
            "Daily stats %s: computed=%s remaining=%s duration_s=%.1f",
            mode,
            summary.dates_computed,
            summary.dates_remaining,
            summary.duration_s,
        )
        return summary

    def _compute_dates(self, dates: Iterable[str], resolver: RatingResolver) -> int:
        by_date: dict[str, list[GameRecord]] = {}
        for game in self._repos.games.fetch_games(end_dates=dates):
            if game.end_date is not None:
                by_date.setdefault(game.end_date, []).append(game)
        rows = [
            build_daily_row(stat_date, games, resolver, self._settings.timezone)
            for stat_date, games in sorted(by_date.items())
        ]
        return self._repos.daily_stats.upsert_rows(rows)

    def _current_watermark(self) -> int | None:
        return self._repos.games.fetch_max_ingest_seq()

    def _local_today(self) -> datetime.date:
        return Now.as_datetime().astimezone(ZoneInfo(self._settings.timezone)).date()
