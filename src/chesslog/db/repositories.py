"""Bundle of DuckDB repositories sharing one connection."""

from __future__ import annotations

from dataclasses import dataclass

import duckdb

from chesslog.db.duckdb_daily_stats_repository import DuckDbDailyStatsRepository
from chesslog.db.duckdb_game_repository import DuckDbGameRepository
from chesslog.db.duckdb_kv_repository import CheckpointRepository, DuckDbKvRepository
from chesslog.db.duckdb_lock_repository import DuckDbLockRepository, OperationLock
from chesslog.db.duckdb_queue_repository import DuckDbQueueRepository
from chesslog.db.duckdb_rating_calendar_repository import DuckDbRatingCalendarRepository
from chesslog.db.duckdb_rating_repository import DuckDbRatingRepository


@dataclass(slots=True)
class Repositories:  # pylint: disable=too-many-instance-attributes
    conn: duckdb.DuckDBPyConnection
    games: DuckDbGameRepository
    ratings: DuckDbRatingRepository
    daily_stats: DuckDbDailyStatsRepository
    rating_calendar: DuckDbRatingCalendarRepository
    queue: DuckDbQueueRepository
    kv: DuckDbKvRepository
    checkpoints: CheckpointRepository
    locks: DuckDbLockRepository

    def lock(self, name: str, ttl_s: float) -> OperationLock:
        """Return a lease context manager for the named operation."""
        return OperationLock(self.locks, name, ttl_s=ttl_s)


def build_repositories(conn: duckdb.DuckDBPyConnection) -> Repositories:
    """Return every repository bound to the provided connection."""
    kv = DuckDbKvRepository(conn)
    return Repositories(
        conn=conn,
        games=DuckDbGameRepository(conn),
        ratings=DuckDbRatingRepository(conn),
        daily_stats=DuckDbDailyStatsRepository(conn),
        rating_calendar=DuckDbRatingCalendarRepository(conn),
        queue=DuckDbQueueRepository(conn),
        kv=kv,
        checkpoints=CheckpointRepository(kv),
        locks=DuckDbLockRepository(conn),
    )


__all__ = ["Repositories", "build_repositories"]
