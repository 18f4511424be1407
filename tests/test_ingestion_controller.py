import pytest

from chesslog.db.duckdb_store import get_connection, init_schema
from chesslog.db.repositories import build_repositories
from chesslog.errors import OperationLockedError, RetriesExhaustedError
from chesslog.game_format import GameFormat
from chesslog.ingestion_controller import (
    IngestionController,
    IngestionCursor,
    IngestionMode,
)
from tests.game_fixtures import FakeArchiveClient, raw_game

M1 = "https://api.chess.com/pub/player/tester/games/2024/01"
M2 = "https://api.chess.com/pub/player/tester/games/2024/02"
M3 = "https://api.chess.com/pub/player/tester/games/2024/03"


class NeverExpires:
    def expired(self) -> bool:
        return False


class ExpiresAfter:
    def __init__(self, checks: int) -> None:
        self.checks = checks

    def expired(self) -> bool:
        self.checks -= 1
        return self.checks < 0


class FlakyArchiveClient(FakeArchiveClient):
    def __init__(self, archives, failing_url):
        super().__init__(archives)
        self.failing_url = failing_url

    def fetch_archive(self, archive_url):
        if archive_url == self.failing_url:
            raise RetriesExhaustedError(f"Giving up on {archive_url}")
        return super().fetch_archive(archive_url)


def _archives():
    return {
        M1: [
            raw_game(1, 1000, time_control="60"),
            raw_game(2, 2000, time_control="600", white_result="agreed", black_result="agreed"),
        ],
        M2: [
            raw_game(3, 3000, time_control="60+1"),
            raw_game(4, 4000, time_control="180", white_result="timeout", black_result="win"),
            raw_game(5, 5000, time_control="60"),
        ],
        M3: [raw_game(6, 6000, time_control="300")],
    }


def _snapshot(repos):
    return sorted(
        (game.url, game.end_ts, game.format, game.my_outcome, game.my_rating)
        for game in repos.games.fetch_games()
    )


def test_end_to_end_three_games_two_archives_with_duplicate(repos, settings):
    archives = {
        M1: [
            raw_game(1, 1000, time_control="60"),
            raw_game(2, 2000, time_control="600", black_result="checkmated"),
        ],
        M2: [
            raw_game(3, 3000, time_control="60+1"),
            raw_game(2, 2500, time_control="600", white_rating=1999),
        ],
    }
    controller = IngestionController(FakeArchiveClient(archives), repos, settings)

    summary = controller.run(IngestionMode.BACKFILL)

    assert summary.complete
    assert summary.records_processed == 3
    games = {game.game_id: game for game in repos.games.fetch_games()}
    assert sorted(games) == ["1", "2", "3"]
    assert games["1"].format is GameFormat.BULLET
    assert games["2"].format is GameFormat.RAPID
    assert games["3"].format is GameFormat.BULLET
    assert (games["3"].base_time_s, games["3"].increment_s) == (60, 1)
    assert games["1"].my_color == "white"
    assert games["1"].my_outcome == 1.0
    assert games["2"].white_rating == 1500
    assert [game.game_id for game in repos.games.fetch_games()] == ["3", "2", "1"]


def test_reingesting_same_games_is_idempotent(repos, settings):
    client = FakeArchiveClient(_archives())
    IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)
    before = _snapshot(repos)
    events_before = len(repos.ratings.fetch_events())

    summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)

    assert summary.records_processed == 0
    assert _snapshot(repos) == before
    assert len(repos.ratings.fetch_events()) == events_before


def test_backfill_walks_oldest_first(repos, settings):
    client = FakeArchiveClient(_archives())
    IngestionController(client, repos, settings).run("backfill")
    assert client.fetched == [M1, M2, M3]
    assert repos.games.count_games() == 6


def test_incremental_stops_at_first_month_without_new_games(repos, settings):
    archives = _archives()
    seed = {M1: archives[M1], M2: archives[M2]}
    IngestionController(FakeArchiveClient(seed), repos, settings).run(IngestionMode.BACKFILL)

    client = FakeArchiveClient(archives)
    summary = IngestionController(client, repos, settings).run(IngestionMode.INCREMENTAL)

    assert client.fetched == [M3, M2]
    assert summary.records_processed == 1
    assert repos.games.count_games() == 6


def test_incremental_on_empty_store_reads_every_month_newest_first(repos, settings):
    client = FakeArchiveClient(_archives())
    IngestionController(client, repos, settings).run(IngestionMode.INCREMENTAL)
    assert client.fetched == [M3, M2, M1]
    assert repos.games.count_games() == 6


@pytest.mark.parametrize("mode", [IngestionMode.INCREMENTAL, IngestionMode.BACKFILL])
@pytest.mark.parametrize("checks", [0, 1, 2])
def test_interrupted_and_resumed_matches_uninterrupted(tmp_path, settings, mode, checks):
    settings.batch_size = 2
    stores = []
    for name in ("straight", "resumed"):
        conn = get_connection(tmp_path / f"{name}.duckdb")
        init_schema(conn)
        stores.append((conn, build_repositories(conn)))
    (conn_a, straight), (conn_b, resumed) = stores

    controller = IngestionController(FakeArchiveClient(_archives()), straight, settings)
    controller.step(controller.start_cursor(mode), NeverExpires())

    controller = IngestionController(FakeArchiveClient(_archives()), resumed, settings)
    first = controller.step(controller.start_cursor(mode), ExpiresAfter(checks))
    assert not first.complete
    stored = first.cursor.model_dump(mode="json")
    restored = IngestionCursor.model_validate(stored)
    second = controller.step(restored, NeverExpires())
    assert second.complete

    assert _snapshot(resumed) == _snapshot(straight)
    conn_a.close()
    conn_b.close()


def test_run_saves_checkpoint_when_time_runs_out(repos, settings):
    settings.job_time_budget_s = 0
    client = FakeArchiveClient(_archives())

    summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)

    assert not summary.complete
    assert client.fetched == []
    assert repos.checkpoints.load("backfill")["archives"] == [M1, M2, M3]

    settings.job_time_budget_s = 3600
    summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)

    assert summary.complete
    assert summary.checkpoint is None
    assert repos.checkpoints.load("backfill") is None
    assert repos.games.count_games() == 6


def test_api_error_saves_cursor_and_propagates(repos, settings):
    client = FlakyArchiveClient(_archives(), failing_url=M2)

    with pytest.raises(RetriesExhaustedError):
        IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)

    checkpoint = repos.checkpoints.load("backfill")
    assert checkpoint["archive_index"] == 1
    assert len(checkpoint["buffer"]) == 2
    assert repos.locks.fetch_owner("backfill") is None

    client.failing_url = None
    IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)
    assert client.fetched == [M1, M2, M3]
    assert repos.games.count_games() == 6


def test_mismatched_or_unreadable_checkpoint_starts_fresh(repos, settings):
    repos.checkpoints.save("fetch", {"mode": "backfill", "archive_index": 3})
    client = FakeArchiveClient(_archives())
    IngestionController(client, repos, settings).run(IngestionMode.INCREMENTAL)
    assert client.fetched == [M3, M2, M1]

    repos.checkpoints.save("backfill", {"mode": "backfill", "archive_index": "x"})
    summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)
    assert summary.complete


def test_archive_game_without_url_is_skipped(repos, settings):
    broken = raw_game(9, 9000)
    broken.pop("url")
    client = FakeArchiveClient({M1: [broken, raw_game(10, 10000)]})
    summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)
    assert summary.records_processed == 1


def test_concurrent_run_of_same_mode_is_rejected(repos, settings):
    controller = IngestionController(FakeArchiveClient(_archives()), repos, settings)
    with repos.lock("fetch", ttl_s=60):
        with pytest.raises(OperationLockedError):
            controller.run(IngestionMode.INCREMENTAL)
        assert controller.run(IngestionMode.BACKFILL).complete
