"""DuckDB repository for end-of-day ratings per format."""

from __future__ import annotations

from collections.abc import Iterable

import duckdb


class DuckDbRatingCalendarRepository:
    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def upsert_entries(self, entries: Iterable[tuple[str, str, int | None]]) -> int:
        """Write ``(calendar_date, format, rating)`` rows, replacing existing ones."""
        rows = list(entries)
        if not rows:
            return 0
        self._conn.executemany(
            "INSERT OR REPLACE INTO rating_calendar (calendar_date, format, rating) VALUES (?, ?, ?)",
            rows,
        )
        return len(rows)

    def fetch_last_date(self) -> str | None:
        row = self._conn.execute("SELECT MAX(calendar_date) FROM rating_calendar").fetchone()
        return str(row[0]) if row and row[0] is not None else None

    def fetch_entries(self) -> dict[str, dict[str, int | None]]:
        """Return ``{calendar_date: {format: rating}}``."""
        calendar: dict[str, dict[str, int | None]] = {}
        rows = self._conn.execute(
            "SELECT calendar_date, format, rating FROM rating_calendar ORDER BY calendar_date, format"
        ).fetchall()
        for calendar_date, fmt, rating in rows:
            calendar.setdefault(str(calendar_date), {})[str(fmt)] = (
                int(rating) if rating is not None else None
            )
        return calendar

    def clear(self) -> None:
        self._conn.execute("DELETE FROM rating_calendar")


__all__ = ["DuckDbRatingCalendarRepository"]
