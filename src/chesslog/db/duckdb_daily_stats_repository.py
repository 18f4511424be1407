"""DuckDB repository for per-day aggregate rows."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping

import duckdb

from chesslog.db._rows_to_dicts import _rows_to_dicts

_DAILY_STATS_COLUMNS = (
    "stat_date",
    "games",
    "wins",
    "draws",
    "losses",
    "time_s",
    "performance_rating",
    "formats",
    "updated_at",
)


class DuckDbDailyStatsRepository:
    """Upsert and read ``daily_stats`` rows; ``formats`` is stored as JSON text."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def upsert_rows(self, rows: Iterable[Mapping[str, object]]) -> int:
        payload = []
        for row in rows:
            values = dict(row)
            values["formats"] = json.dumps(values.get("formats") or {}, sort_keys=True)
            payload.append(tuple(values.get(column) for column in _DAILY_STATS_COLUMNS))
        if not payload:
            return 0
        self._conn.executemany(
            f"INSERT OR REPLACE INTO daily_stats ({', '.join(_DAILY_STATS_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in _DAILY_STATS_COLUMNS)})",
            payload,
        )
        return len(payload)

    def count_rows(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM daily_stats").fetchone()
        return int(row[0]) if row else 0

    def fetch_rows(self, stat_date: str | None = None) -> list[dict[str, object]]:
        """Return rows ordered by date with ``formats`` decoded."""
        query = f"SELECT {', '.join(_DAILY_STATS_COLUMNS)} FROM daily_stats"
        params: list[object] = []
        if stat_date is not None:
            query += " WHERE stat_date = ?"
            params.append(stat_date)
        rows = _rows_to_dicts(self._conn.execute(query + " ORDER BY stat_date", params))
        for row in rows:
            row["formats"] = json.loads(str(row["formats"])) if row["formats"] else {}
        return rows

    def fetch_row(self, stat_date: str) -> dict[str, object] | None:
        rows = self.fetch_rows(stat_date)
        return rows[0] if rows else None


__all__ = ["DuckDbDailyStatsRepository"]
