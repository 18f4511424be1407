"""DuckDB repository for the append-only rating event log."""

from __future__ import annotations

from collections.abc import Iterable

import duckdb

from chesslog.rating_event import RatingEvent
from chesslog.utils import Now


class DuckDbRatingRepository:
    """Append and read ``ratings`` rows."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def append_events(self, events: Iterable[RatingEvent]) -> int:
        rows = [
            (event.timestamp, event.format, event.rating, event.url, event.source, Now.as_seconds())
            for event in events
        ]
        if not rows:
            return 0
        self._conn.executemany(
            """
            INSERT INTO ratings (event_ts, format, rating, url, source, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return len(rows)

    def fetch_events(self, fmt: str | None = None) -> list[RatingEvent]:
        """Return events ordered by format then timestamp ascending."""
        query = "SELECT event_ts, format, rating, url, source FROM ratings"
        params: list[object] = []
        if fmt is not None:
            query += " WHERE format = ?"
            params.append(fmt)
        query += " ORDER BY format, event_ts, recorded_at"
        return [
            RatingEvent(
                timestamp=int(event_ts),
                format=str(format_),
                rating=int(rating),
                url=url,
                source=str(source),
            )
            for event_ts, format_, rating, url, source in self._conn.execute(
                query, params
            ).fetchall()
        ]

    def delete_source(self, source: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM ratings WHERE source = ?", [source]
        ).fetchone()
        self._conn.execute("DELETE FROM ratings WHERE source = ?", [source])
        return int(row[0]) if row else 0


__all__ = ["DuckDbRatingRepository"]
