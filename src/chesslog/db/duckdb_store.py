from __future__ import annotations

import os
from pathlib import Path

import duckdb

from chesslog.utils.logger import get_logger

logger = get_logger(__name__)


GAMES_SCHEMA = """
CREATE TABLE IF NOT EXISTS games (
    url TEXT PRIMARY KEY,
    game_id TEXT,
    game_type TEXT,
    username TEXT,
    start_ts BIGINT,
    end_ts BIGINT,
    end_date TEXT,
    rules TEXT,
    time_class TEXT,
    time_control TEXT,
    base_time_s INTEGER,
    increment_s INTEGER,
    moves_per_period INTEGER,
    format TEXT,
    rated BOOLEAN,
    white_username TEXT,
    white_rating INTEGER,
    white_result TEXT,
    white_accuracy DOUBLE,
    black_username TEXT,
    black_rating INTEGER,
    black_result TEXT,
    black_accuracy DOUBLE,
    fen TEXT,
    pgn TEXT,
    event TEXT,
    site TEXT,
    pgn_date TEXT,
    round TEXT,
    result TEXT,
    eco TEXT,
    eco_url TEXT,
    opening TEXT,
    termination TEXT,
    moves TEXT[],
    clocks DOUBLE[],
    move_times DOUBLE[],
    ply_count INTEGER,
    duration_s DOUBLE,
    my_color TEXT,
    my_rating INTEGER,
    my_result TEXT,
    my_outcome DOUBLE,
    my_accuracy DOUBLE,
    opponent_username TEXT,
    opponent_rating INTEGER,
    opponent_result TEXT,
    opponent_accuracy DOUBLE,
    my_rating_change INTEGER,
    opponent_rating_change INTEGER,
    my_pregame_rating INTEGER,
    opponent_pregame_rating INTEGER,
    opponent_country TEXT,
    opponent_membership TEXT,
    callback_enriched_at BIGINT,
    processed_at BIGINT,
    schema_version INTEGER,
    store_order BIGINT
);
"""

RATINGS_SCHEMA = """
CREATE TABLE IF NOT EXISTS ratings (
    event_ts BIGINT,
    format TEXT,
    rating INTEGER,
    url TEXT,
    source TEXT,
    recorded_at BIGINT
);
"""

DAILY_STATS_SCHEMA = """
CREATE TABLE IF NOT EXISTS daily_stats (
    stat_date TEXT PRIMARY KEY,
    games INTEGER,
    wins INTEGER,
    draws INTEGER,
    losses INTEGER,
    time_s DOUBLE,
    performance_rating INTEGER,
    formats TEXT,
    updated_at BIGINT
);
"""

CALLBACK_QUEUE_SCHEMA = """
CREATE TABLE IF NOT EXISTS callback_queue (
    game_id TEXT PRIMARY KEY,
    game_type TEXT,
    url TEXT,
    status TEXT,
    attempts INTEGER,
    last_error TEXT,
    created_at BIGINT,
    updated_at BIGINT
);
"""

KV_STORE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at BIGINT
);
"""

OPERATION_LOCKS_SCHEMA = """
CREATE TABLE IF NOT EXISTS operation_locks (
    name TEXT PRIMARY KEY,
    owner TEXT,
    acquired_at DOUBLE,
    expires_at DOUBLE
);
"""

RATING_CALENDAR_SCHEMA = """
CREATE TABLE IF NOT EXISTS rating_calendar (
    calendar_date TEXT,
    format TEXT,
    rating INTEGER,
    PRIMARY KEY (calendar_date, format)
);
"""

SCHEMA_VERSION_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER,
    updated_at TIMESTAMP
);
"""

SCHEMA_VERSION = 3


def get_connection(db_path: Path | str) -> duckdb.DuckDBPyConnection:
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Opening DuckDB at %s", db_path)
    try:
        return duckdb.connect(str(db_path))
    except duckdb.InternalException as exc:
        if not _should_attempt_wal_recovery(exc):
            raise
        wal_path = db_path.with_name(f"{db_path.name}.wal")
        if not wal_path.exists():
            raise
        logger.warning("Removing DuckDB WAL after replay error: %s", wal_path)
        wal_path.unlink()
        return duckdb.connect(str(db_path))


def init_schema(conn: duckdb.DuckDBPyConnection) -> None:
    migrate_schema(conn)


def migrate_schema(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(SCHEMA_VERSION_SCHEMA)
    version = _get_schema_version(conn)
    for target_version, migration in _SCHEMA_MIGRATIONS:
        if version >= target_version:
            continue
        logger.info("Applying DuckDB schema migration v%s", target_version)
        migration(conn)
        _set_schema_version(conn, target_version)
        version = target_version


def get_schema_version(conn: duckdb.DuckDBPyConnection) -> int:
    return _get_schema_version(conn)


def _should_attempt_wal_recovery(exc: Exception) -> bool:
    message = str(exc).lower()
    if "wal" not in message:
        return False
    allow = os.getenv("CHESSLOG_ALLOW_WAL_RECOVERY", "").lower()
    return allow in {"1", "true", "yes"}


def _get_schema_version(conn: duckdb.DuckDBPyConnection) -> int:
    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if not row:
        return 0
    return int(row[0] or 0)


def _set_schema_version(conn: duckdb.DuckDBPyConnection, version: int) -> None:
    conn.execute("DELETE FROM schema_version")
    conn.execute("INSERT INTO schema_version VALUES (?, CURRENT_TIMESTAMP)", [version])


def _migration_base_tables(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(GAMES_SCHEMA)
    conn.execute(RATINGS_SCHEMA)
    conn.execute(DAILY_STATS_SCHEMA)
    conn.execute(CALLBACK_QUEUE_SCHEMA)
    conn.execute(KV_STORE_SCHEMA)
    conn.execute(OPERATION_LOCKS_SCHEMA)


def _migration_rating_calendar(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute(RATING_CALENDAR_SCHEMA)


def _migration_games_ingest_seq(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute("ALTER TABLE games ADD COLUMN IF NOT EXISTS ingest_seq BIGINT")


_SCHEMA_MIGRATIONS = [
    (1, _migration_base_tables),
    (2, _migration_rating_calendar),
    (3, _migration_games_ingest_seq),
]
