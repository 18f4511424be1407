"""Key/value JSON storage, including per-operation checkpoints."""

from __future__ import annotations

import json

import duckdb

from chesslog.utils import Now, get_logger

logger = get_logger(__name__)

CHECKPOINT_PREFIX = "checkpoint:"


class DuckDbKvRepository:
    """Store JSON-serialisable values in ``kv_store``."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def get(self, key: str) -> object | None:
        """Return the decoded value, or None when absent or unreadable."""
        row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", [key]).fetchone()
        if not row or row[0] is None:
            return None
        try:
            return json.loads(str(row[0]))
        except json.JSONDecodeError:
            logger.warning("Invalid JSON stored under %s, ignoring", key)
            return None

    def set(self, key: str, value: object) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            [key, json.dumps(value, sort_keys=True), Now.as_seconds()],
        )

    def delete(self, key: str) -> None:
        self._conn.execute("DELETE FROM kv_store WHERE key = ?", [key])


class CheckpointRepository:
    """Persist resumable job state under ``checkpoint:<operation>``."""

    def __init__(self, kv: DuckDbKvRepository) -> None:
        self._kv = kv

    def load(self, operation: str) -> dict | None:
        """Return the checkpoint for ``operation``.

        Args:
            operation: Job name.

        Returns:
            The stored mapping, or None when missing or unreadable.
        """

        value = self._kv.get(CHECKPOINT_PREFIX + operation)
        if value is None:
            return None
        if not isinstance(value, dict):
            logger.warning("Ignoring malformed checkpoint for %s", operation)
            return None
        return value

    def save(self, operation: str, value: dict) -> None:
        self._kv.set(CHECKPOINT_PREFIX + operation, value)

    def clear(self, operation: str) -> None:
        self._kv.delete(CHECKPOINT_PREFIX + operation)


__all__ = ["CHECKPOINT_PREFIX", "CheckpointRepository", "DuckDbKvRepository"]
