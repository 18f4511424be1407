import pytest

from chesslog.batch_writer import BatchWriter
from chesslog.db.duckdb_lock_repository import OperationLock
from chesslog.db.duckdb_queue_repository import QueueStatus
from chesslog.db.duckdb_store import (
    GAMES_SCHEMA,
    SCHEMA_VERSION,
    SCHEMA_VERSION_SCHEMA,
    get_connection,
    get_schema_version,
    init_schema,
)
from chesslog.duplicate_filter import DuplicateFilter
from chesslog.errors import OperationLockedError
from chesslog.game_format import GameFormat
from chesslog.rating_event import SOURCE_GAME
from tests.game_fixtures import DAY_START, make_record


def _writer(repos):
    return BatchWriter(repos.games, repos.ratings, repos.queue)


def test_schema_is_migrated_once(tmp_path):
    conn = get_connection(tmp_path / "db.duckdb")
    init_schema(conn)
    init_schema(conn)
    assert get_schema_version(conn) == SCHEMA_VERSION
    tables = {row[0] for row in conn.execute("SHOW TABLES").fetchall()}
    assert {
        "games",
        "ratings",
        "daily_stats",
        "rating_calendar",
        "callback_queue",
        "kv_store",
        "operation_locks",
    } <= tables
    conn.close()


def test_version_two_store_gains_ingest_seq(tmp_path):
    conn = get_connection(tmp_path / "db.duckdb")
    conn.execute(SCHEMA_VERSION_SCHEMA)
    conn.execute(GAMES_SCHEMA)
    conn.execute("INSERT INTO schema_version VALUES (2, CURRENT_TIMESTAMP)")
    conn.execute(
        "INSERT INTO games (url, username) VALUES ('https://www.chess.com/game/live/1', 'tester')"
    )

    init_schema(conn)

    assert get_schema_version(conn) == SCHEMA_VERSION
    assert conn.execute("SELECT ingest_seq FROM games").fetchall() == [(None,)]
    conn.close()


def test_duplicate_filter_drops_stored_and_repeated_urls(repos):
    _writer(repos).write([make_record(1, DAY_START, end_date="2024-01-15")])
    candidates = [
        make_record(1, DAY_START, end_date="2024-01-15"),
        make_record(2, DAY_START + 10, end_date="2024-01-15", my_rating=1510),
        make_record(2, DAY_START + 10, end_date="2024-01-15", my_rating=1999),
        make_record(3, DAY_START + 20, end_date="2024-01-15"),
    ]

    fresh = DuplicateFilter(repos.games).filter(candidates)

    assert [record.game_id for record in fresh] == ["2", "3"]
    assert fresh[0].my_rating == 1510


def test_batch_writer_appends_games_events_and_queue(repos):
    writer = _writer(repos)
    records = [
        make_record(1, DAY_START + 100, end_date="2024-01-15", my_rating=1500),
        make_record(2, DAY_START + 50, end_date="2024-01-15", my_rating=1490, rated=False),
        make_record(3, DAY_START + 200, end_date="2024-01-15", my_rating=None),
    ]

    assert writer.write(records) == 3
    assert writer.write([make_record(1, DAY_START + 100, end_date="2024-01-15")]) == 0

    events = repos.ratings.fetch_events()
    assert [(event.timestamp, event.rating, event.source) for event in events] == [
        (DAY_START + 100, 1500, SOURCE_GAME)
    ]
    assert repos.queue.count_by_status() == {QueueStatus.PENDING.value: 3}


def test_writes_are_numbered_in_order_and_stamped_when_stored(repos):
    writer = _writer(repos)
    writer.write(
        [
            make_record(5, DAY_START + 500, end_date="2024-01-15"),
            make_record(4, DAY_START + 400, end_date="2024-01-16"),
        ]
    )
    writer.write([make_record(5, DAY_START + 500, end_date="2024-01-15")])
    writer.write([make_record(1, DAY_START + 100, end_date="2024-01-17")])

    games = {game.game_id: game for game in repos.games.fetch_games()}
    assert {key: game.ingest_seq for key, game in games.items()} == {"5": 1, "4": 2, "1": 3}
    assert all(game.processed_at > 100 for game in games.values())
    assert repos.games.fetch_max_ingest_seq() == 3
    assert repos.games.fetch_end_dates_ingested_since(1) == {"2024-01-16", "2024-01-17"}
    assert repos.games.fetch_end_dates_ingested_since(3) == set()


def test_finalize_order_sorts_by_end_time_descending(repos):
    writer = _writer(repos)
    writer.write([make_record(1, DAY_START + 10, end_date="2024-01-15")])
    writer.write([make_record(2, DAY_START + 30, end_date="2024-01-15")])
    writer.write([make_record(3, DAY_START + 20, end_date="2024-01-15")])

    writer.finalize_order()

    assert [game.game_id for game in repos.games.fetch_games()] == ["2", "3", "1"]
    orders = repos.conn.execute("SELECT game_id, store_order FROM games ORDER BY game_id").fetchall()
    assert orders == [("1", 3), ("2", 1), ("3", 2)]


def test_patch_updates_only_supplied_fields(repos):
    writer = _writer(repos)
    writer.write([make_record(1, DAY_START, end_date="2024-01-15", my_rating=1500)])
    url = "https://www.chess.com/game/live/1"

    assert writer.patch(url, {"my_rating_change": 8, "opponent_country": "Norway"})
    assert not writer.patch("https://www.chess.com/game/live/404", {"my_rating_change": 1})
    with pytest.raises(ValueError):
        writer.patch(url, {"my_rating": 1})

    game = repos.games.fetch_game(url)
    assert game.my_rating_change == 8
    assert game.opponent_country == "Norway"
    assert game.my_rating == 1500
    assert game.format is GameFormat.BULLET


def test_checkpoint_round_trip_and_unreadable_values(repos):
    checkpoints = repos.checkpoints
    assert checkpoints.load("fetch") is None
    checkpoints.save("fetch", {"archive_index": 2, "buffer": []})
    assert checkpoints.load("fetch") == {"archive_index": 2, "buffer": []}

    repos.conn.execute(
        "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
        ["checkpoint:fetch", "{not json", 0],
    )
    assert checkpoints.load("fetch") is None
    repos.kv.set("checkpoint:derive", [1, 2])
    assert checkpoints.load("derive") is None

    checkpoints.save("fetch", {"ok": True})
    checkpoints.clear("fetch")
    assert checkpoints.load("fetch") is None


def test_operation_lock_blocks_same_operation_only(repos):
    with OperationLock(repos.locks, "fetch", owner="first"):
        with pytest.raises(OperationLockedError):
            with OperationLock(repos.locks, "fetch", owner="second"):
                pass
        with OperationLock(repos.locks, "derive", owner="second"):
            assert repos.locks.fetch_owner("derive") == "second"
    assert repos.locks.fetch_owner("fetch") is None
    with OperationLock(repos.locks, "fetch", owner="second"):
        assert repos.locks.fetch_owner("fetch") == "second"


def test_expired_lock_is_taken_over(repos):
    assert repos.locks.try_acquire("daily_stats", "crashed", ttl_s=10, now=100.0)
    assert not repos.locks.try_acquire("daily_stats", "next", ttl_s=10, now=105.0)
    assert repos.locks.try_acquire("daily_stats", "next", ttl_s=10, now=111.0)
    assert repos.locks.fetch_owner("daily_stats") == "next"


def test_queue_state_machine(repos):
    repos.queue.enqueue([("1", "live", "u1"), ("2", "daily", "u2")])
    assert repos.queue.enqueue([("1", "live", "u1")]) == 0

    assert repos.queue.record_failure("2", "boom", max_attempts=2) == QueueStatus.PENDING
    assert repos.queue.record_failure("2", "boom again", max_attempts=2) == QueueStatus.FAILED
    repos.queue.mark_completed("1")

    failed = repos.queue.fetch_item("2")
    assert failed["status"] == "failed"
    assert failed["attempts"] == 2
    assert failed["last_error"] == "boom again"
    assert repos.queue.fetch_pending(10) == []

    assert repos.queue.requeue_failed() == 1
    assert [item["game_id"] for item in repos.queue.fetch_pending(10)] == ["2"]
