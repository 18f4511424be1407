"""DuckDB repository for the per-game callback work queue."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

import duckdb

from chesslog.db._rows_to_dicts import _rows_to_dicts
from chesslog.utils import Now


class QueueStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DuckDbQueueRepository:
    """Track callback work items keyed by game id."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def enqueue(self, items: Iterable[tuple[str, str, str]]) -> int:
        """Add ``(game_id, game_type, url)`` items as pending; existing ids are kept.

        Returns:
            Number of newly queued items.
        """
        now = Now.as_seconds()
        rows = [
            (game_id, game_type, url, QueueStatus.PENDING.value, 0, None, now, now)
            for game_id, game_type, url in items
        ]
        if not rows:
            return 0
        before = self._count()
        self._conn.executemany(
            """
            INSERT OR IGNORE INTO callback_queue (
                game_id, game_type, url, status, attempts, last_error, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return self._count() - before

    def fetch_pending(self, limit: int) -> list[dict[str, object]]:
        """Return up to ``limit`` pending items, oldest first."""
        return _rows_to_dicts(
            self._conn.execute(
                """
                SELECT game_id, game_type, url, status, attempts, last_error
                FROM callback_queue
                WHERE status = ?
                ORDER BY created_at, game_id
                LIMIT ?
                """,
                [QueueStatus.PENDING.value, limit],
            )
        )

    def mark_completed(self, game_id: str) -> None:
        self._conn.execute(
            """
            UPDATE callback_queue
            SET status = ?, attempts = attempts + 1, last_error = NULL, updated_at = ?
            WHERE game_id = ?
            """,
            [QueueStatus.COMPLETED.value, Now.as_seconds(), game_id],
        )

    def record_failure(self, game_id: str, error: str, max_attempts: int) -> QueueStatus:
        """Count a failed attempt; the item fails permanently at ``max_attempts``."""
        row = self._conn.execute(
            "SELECT attempts FROM callback_queue WHERE game_id = ?", [game_id]
        ).fetchone()
        attempts = (int(row[0] or 0) if row else 0) + 1
        status = QueueStatus.FAILED if attempts >= max_attempts else QueueStatus.PENDING
        self._conn.execute(
            """
            UPDATE callback_queue
            SET status = ?, attempts = ?, last_error = ?, updated_at = ?
            WHERE game_id = ?
            """,
            [status.value, attempts, error, Now.as_seconds(), game_id],
        )
        return status

    def requeue_failed(self) -> int:
        """Reset failed items to pending with a fresh attempt count."""
        count = self.count_by_status().get(QueueStatus.FAILED.value, 0)
        self._conn.execute(
            "UPDATE callback_queue SET status = ?, attempts = 0, updated_at = ? WHERE status = ?",
            [QueueStatus.PENDING.value, Now.as_seconds(), QueueStatus.FAILED.value],
        )
        return count

    def count_by_status(self) -> dict[str, int]:
        rows = self._conn.execute(
            "SELECT status, COUNT(*) FROM callback_queue GROUP BY status"
        ).fetchall()
        return {str(status): int(count) for status, count in rows}

    def fetch_item(self, game_id: str) -> dict[str, object] | None:
        rows = _rows_to_dicts(
            self._conn.execute(
                """
                SELECT game_id, game_type, url, status, attempts, last_error
                FROM callback_queue
                WHERE game_id = ?
                """,
                [game_id],
            )
        )
        return rows[0] if rows else None

    def _count(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM callback_queue").fetchone()
        return int(row[0]) if row else 0


__all__ = ["DuckDbQueueRepository", "QueueStatus"]
