"""Named, expiring leases preventing overlapping runs of one job."""

from __future__ import annotations

import time
from collections.abc import Callable
from types import TracebackType

import duckdb

from chesslog.errors import OperationLockedError
from chesslog.utils import generate_id, get_logger

logger = get_logger(__name__)


class DuckDbLockRepository:
    """Lease rows in ``operation_locks`` keyed by lock name."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def try_acquire(self, name: str, owner: str, ttl_s: float, now: float) -> bool:
        """Take the lease unless another owner holds an unexpired one."""
        row = self._conn.execute(
            "SELECT owner, expires_at FROM operation_locks WHERE name = ?", [name]
        ).fetchone()
        if row is not None:
            holder, expires_at = row
            if holder != owner and expires_at is not None and float(expires_at) > now:
                return False
            if holder != owner:
                logger.warning("Taking over expired lock %s from %s", name, holder)
        self._conn.execute(
            """
            INSERT OR REPLACE INTO operation_locks (name, owner, acquired_at, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            [name, owner, now, now + ttl_s],
        )
        return True

    def release(self, name: str, owner: str) -> None:
        self._conn.execute(
            "DELETE FROM operation_locks WHERE name = ? AND owner = ?", [name, owner]
        )

    def fetch_owner(self, name: str) -> str | None:
        row = self._conn.execute(
            "SELECT owner FROM operation_locks WHERE name = ?", [name]
        ).fetchone()
        return str(row[0]) if row else None


class OperationLock:
    """Context manager holding a named lease for the duration of a job.

    Raises:
        OperationLockedError: On enter, when another owner holds the lease.
    """

    def __init__(
        self,
        repo: DuckDbLockRepository,
        name: str,
        *,
        ttl_s: float = 600.0,
        owner: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self.name = name
        self.owner = owner or generate_id()
        self._ttl_s = ttl_s
        self._clock = clock

    def __enter__(self) -> OperationLock:
        if not self._repo.try_acquire(self.name, self.owner, self._ttl_s, self._clock()):
            raise OperationLockedError(f"Operation {self.name!r} is already running")
        logger.debug("Acquired lock %s", self.name)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._repo.release(self.name, self.owner)
        logger.debug("Released lock %s", self.name)


__all__ = ["DuckDbLockRepository", "OperationLock"]
