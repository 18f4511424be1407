import datetime
import unittest

import pytest

from chesslog.batch_writer import BatchWriter
from chesslog.daily_stats import (
    WATERMARK_KEY,
    DailyStatsAggregator,
    build_daily_row,
    end_of_day_ts,
    performance_rating,
    summarize_games,
)
from chesslog.game_record import GameRecord
from chesslog.ingestion_controller import IngestionController, IngestionCursor, IngestionMode
from chesslog.rating_event import RatingEvent
from chesslog.rating_resolver import RatingResolver
from tests.game_fixtures import DAY_START, FakeArchiveClient, make_record, raw_game

HOUR = 3600
TODAY = datetime.date(2024, 1, 17)


def _games() -> list[GameRecord]:
    return [
        make_record(
            1,
            DAY_START + 8 * HOUR,
            end_date="2024-01-15",
            my_rating=1500,
            my_outcome=1.0,
            opponent_rating=1400,
        ),
        make_record(
            2,
            DAY_START + 22 * HOUR,
            end_date="2024-01-15",
            my_rating=1512,
            my_outcome=0.0,
            opponent_rating=1600,
        ),
        make_record(
            3,
            DAY_START + 44 * HOUR,
            end_date="2024-01-16",
            my_rating=1520,
            my_outcome=1.0,
            opponent_rating=1500,
        ),
    ]


class FrozenAfter:
    """Clock that stands still for ``ticks`` calls and then jumps past any budget."""

    def __init__(self, ticks: int) -> None:
        self.ticks = ticks
        self.calls = 0

    def __call__(self) -> float:
        self.calls += 1
        return 0.0 if self.calls <= self.ticks else 10_000.0


class PerformanceRatingTests(unittest.TestCase):
    def test_perfect_score_clamps_to_plus_400(self) -> None:
        self.assertEqual(performance_rating(1400, 1.0), 1800)

    def test_zero_score_clamps_to_minus_400(self) -> None:
        self.assertEqual(performance_rating(1400, 0.0), 1000)

    def test_even_score_is_average(self) -> None:
        self.assertEqual(performance_rating(1600, 0.5), 1600)

    def test_partial_score(self) -> None:
        self.assertEqual(performance_rating(1500, 0.75), 1691)

    def test_missing_inputs(self) -> None:
        self.assertIsNone(performance_rating(None, 0.5))
        self.assertIsNone(performance_rating(1500, None))


class SummaryTests(unittest.TestCase):
    def test_end_of_day_ts(self) -> None:
        self.assertEqual(end_of_day_ts(datetime.date(2024, 1, 15)), DAY_START + 86399)
        self.assertEqual(
            end_of_day_ts(datetime.date(2024, 1, 15), "America/New_York"),
            DAY_START + 86399 + 5 * HOUR,
        )

    def test_streaks_and_counts(self) -> None:
        outcomes = [1.0, 1.0, 0.5, 0.0, 0.0, 0.0, 1.0]
        games = [
            make_record(index, DAY_START + index, end_date="2024-01-15", my_outcome=outcome)
            for index, outcome in enumerate(outcomes)
        ]
        summary = summarize_games(list(reversed(games)))
        self.assertEqual((summary["wins"], summary["draws"], summary["losses"]), (3, 1, 3))
        self.assertEqual(summary["longest_win_streak"], 2)
        self.assertEqual(summary["longest_loss_streak"], 3)
        self.assertEqual(summary["time_s"], 420.0)
        self.assertEqual(summary["avg_time_s"], 60.0)
        self.assertNotIn("rating_start", summary)

    def test_pregame_opponent_rating_is_preferred(self) -> None:
        game = make_record(1, DAY_START, end_date="2024-01-15", opponent_rating=1508)
        game.opponent_pregame_rating = 1500
        self.assertEqual(summarize_games([game])["avg_opponent_rating"], 1500.0)

    def test_daily_row_groups_formats_and_resolves_ratings(self) -> None:
        games = _games()
        resolver = RatingResolver(
            RatingEvent(game.end_ts, "bullet", game.my_rating) for game in games
        )
        unknown = make_record(9, DAY_START + 9 * HOUR, end_date="2024-01-15", fmt=None)
        row = build_daily_row("2024-01-15", games[:2] + [unknown], resolver)

        self.assertEqual(row["games"], 3)
        self.assertEqual(sorted(row["formats"]), ["bullet", "unknown"])
        bullet = row["formats"]["bullet"]
        self.assertEqual(bullet["games"], 2)
        self.assertEqual(bullet["performance_rating"], 1500)
        self.assertEqual(bullet["rating_start"], 1500)
        self.assertEqual(bullet["rating_end"], 1512)
        self.assertEqual(bullet["rating_change"], 12)
        self.assertNotIn("rating_start", row["formats"]["unknown"])


@pytest.fixture
def stored(repos):
    writer = BatchWriter(repos.games, repos.ratings, repos.queue)
    writer.write(_games())
    writer.finalize_order()
    return repos


def test_rebuild_writes_one_row_per_date(stored, settings):
    summary = DailyStatsAggregator(stored, settings, today=lambda: TODAY).rebuild()

    assert summary.as_dict()["complete"] is True
    assert summary.dates_computed == 2
    rows = stored.daily_stats.fetch_rows()
    assert [row["stat_date"] for row in rows] == ["2024-01-15", "2024-01-16"]
    first, second = rows
    assert (first["games"], first["wins"], first["losses"]) == (2, 1, 1)
    assert first["performance_rating"] == 1500
    assert first["formats"]["bullet"]["rating_change"] == 12
    assert second["formats"]["bullet"]["rating_start"] == 1512
    assert second["formats"]["bullet"]["rating_end"] == 1520
    assert second["performance_rating"] == 1900
    assert stored.kv.get(WATERMARK_KEY) == 3


def test_update_on_empty_table_runs_rebuild(stored, settings):
    summary = DailyStatsAggregator(stored, settings, today=lambda: TODAY).update()
    assert summary.mode == "rebuild"
    assert stored.daily_stats.count_rows() == 2


def test_update_recomputes_only_affected_dates(stored, settings):
    aggregator = DailyStatsAggregator(stored, settings, today=lambda: TODAY)
    aggregator.rebuild()
    late = make_record(
        4,
        DAY_START - 5 * 86400 + HOUR,
        end_date="2024-01-10",
        my_rating=1490,
    )
    BatchWriter(stored.games, stored.ratings, stored.queue).write([late])

    assert aggregator.affected_dates(3) == [
        "2024-01-10",
        "2024-01-15",
        "2024-01-16",
        "2024-01-17",
    ]
    summary = aggregator.update()

    assert summary.mode == "update"
    assert summary.dates_computed == 4
    assert [row["stat_date"] for row in stored.daily_stats.fetch_rows()] == [
        "2024-01-10",
        "2024-01-15",
        "2024-01-16",
    ]
    assert stored.kv.get(WATERMARK_KEY) == 4


def test_affected_dates_without_watermark_covers_everything(stored, settings):
    aggregator = DailyStatsAggregator(stored, settings, today=lambda: datetime.date(2024, 2, 1))
    assert aggregator.affected_dates(None) == [
        "2024-01-15",
        "2024-01-16",
        "2024-01-30",
        "2024-01-31",
        "2024-02-01",
    ]


def test_interrupted_rebuild_resumes_from_checkpoint(stored, settings):
    settings.job_time_budget_s = 10
    first = DailyStatsAggregator(
        stored, settings, clock=FrozenAfter(2), today=lambda: TODAY
    ).rebuild()

    assert (first.complete, first.dates_computed, first.dates_remaining) == (False, 1, 1)
    checkpoint = stored.checkpoints.load("daily_stats")
    assert checkpoint["offset"] == 1
    assert checkpoint["dates"] == ["2024-01-15", "2024-01-16"]
    assert stored.kv.get(WATERMARK_KEY) is None

    second = DailyStatsAggregator(stored, settings, today=lambda: TODAY).update()

    assert second.mode == "rebuild"
    assert (second.complete, second.dates_computed) == (True, 1)
    assert stored.daily_stats.count_rows() == 2
    assert stored.checkpoints.load("daily_stats") is None
    assert stored.kv.get(WATERMARK_KEY) == 3


class StopAfterChecks:
    def __init__(self, checks: int) -> None:
        self.checks = checks

    def expired(self) -> bool:
        self.checks -= 1
        return self.checks < 0


def test_update_picks_up_games_flushed_from_a_resumed_backfill(repos, settings):
    months = [
        f"https://api.chess.com/pub/player/tester/games/2024/{month:02d}" for month in (1, 2, 3)
    ]
    day = 86400
    client = FakeArchiveClient(
        {
            months[0]: [raw_game(1, DAY_START + HOUR), raw_game(2, DAY_START + 2 * HOUR)],
            months[1]: [
                raw_game(3, DAY_START + day + HOUR),
                raw_game(4, DAY_START + day + 2 * HOUR),
                raw_game(5, DAY_START + 2 * day + HOUR),
            ],
            months[2]: [raw_game(6, DAY_START + 3 * day + HOUR)],
        }
    )
    settings.batch_size = 2
    controller = IngestionController(client, repos, settings)
    aggregator = DailyStatsAggregator(repos, settings, today=lambda: datetime.date(2024, 3, 1))

    first = controller.step(controller.start_cursor(IngestionMode.BACKFILL), StopAfterChecks(2))
    assert not first.complete
    assert [record.end_date for record in first.cursor.buffer] == ["2024-01-17"]
    aggregator.update()
    assert [row["stat_date"] for row in repos.daily_stats.fetch_rows()] == [
        "2024-01-15",
        "2024-01-16",
    ]

    resumed = IngestionCursor.model_validate(first.cursor.model_dump(mode="json"))
    assert controller.step(resumed, StopAfterChecks(10)).complete
    summary = aggregator.update()

    assert summary.mode == "update"
    rows = {row["stat_date"]: row for row in repos.daily_stats.fetch_rows()}
    assert sorted(rows) == ["2024-01-15", "2024-01-16", "2024-01-17", "2024-01-18"]
    assert rows["2024-01-17"]["games"] == 1
    assert repos.kv.get(WATERMARK_KEY) == 6
