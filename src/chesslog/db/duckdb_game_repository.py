"""DuckDB repository for enriched game rows."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import duckdb

from chesslog.db._rows_to_dicts import _rows_to_dicts
from chesslog.game_record import CALLBACK_COLUMNS, GAME_COLUMNS, GameRecord

_INSERT_GAMES_SQL = (
    f"INSERT OR IGNORE INTO games ({', '.join(GAME_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in GAME_COLUMNS)})"
)


class DuckDbGameRepository:
    """Persist and read ``games`` rows keyed by url."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn

    def fetch_urls(self) -> set[str]:
        """Return every stored game url."""
        rows = self._conn.execute("SELECT url FROM games").fetchall()
        return {str(row[0]) for row in rows}

    def insert_games(self, records: Iterable[GameRecord]) -> list[str]:
        """Append game rows, skipping urls already present; return the urls added.

        Each added row gets the next ``ingest_seq``, so rows written later
        always carry a larger sequence than rows written earlier.
        """
        batch: dict[str, GameRecord] = {}
        for record in records:
            batch.setdefault(record.url, record)
        if not batch:
            return []
        placeholders = ", ".join("?" for _ in batch)
        existing = {
            str(row[0])
            for row in self._conn.execute(
                f"SELECT url FROM games WHERE url IN ({placeholders})",
                list(batch),
            ).fetchall()
        }
        fresh = [record for url, record in batch.items() if url not in existing]
        if fresh:
            first_seq = (self.fetch_max_ingest_seq() or 0) + 1
            fresh = [
                record.model_copy(update={"ingest_seq": first_seq + offset})
                for offset, record in enumerate(fresh)
            ]
            self._conn.executemany(
                _INSERT_GAMES_SQL,
                [_game_values(record) for record in fresh],
            )
        return [record.url for record in fresh]

    def patch_game(self, url: str, fields: Mapping[str, object]) -> bool:
        """Update only the supplied callback-derived columns of one game.

        Raises:
            ValueError: When a field is not a patchable column.
        """
        unknown = set(fields) - CALLBACK_COLUMNS
        if unknown:
            raise ValueError(f"Not patchable game columns: {sorted(unknown)}")
        if not fields:
            return False
        if not self._conn.execute("SELECT 1 FROM games WHERE url = ?", [url]).fetchone():
            return False
        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        self._conn.execute(
            f"UPDATE games SET {assignments} WHERE url = ?",
            [fields[column] for column in columns] + [url],
        )
        return True

    def assign_store_order(self) -> None:
        """Number rows by ``end_ts`` descending so ordered reads are cheap."""
        self._conn.execute(
            """
            UPDATE games
            SET store_order = ranked.position
            FROM (
                SELECT
                    url,
                    row_number() OVER (ORDER BY end_ts DESC NULLS LAST, url) AS position
                FROM games
            ) AS ranked
            WHERE games.url = ranked.url
            """
        )

    def count_games(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM games").fetchone()
        return int(row[0]) if row else 0

    def fetch_game(self, url: str) -> GameRecord | None:
        result = self._conn.execute(
            f"SELECT {', '.join(GAME_COLUMNS)} FROM games WHERE url = ?",
            [url],
        )
        rows = _rows_to_dicts(result)
        return GameRecord.model_validate(rows[0]) if rows else None

    def fetch_games(
        self,
        *,
        end_dates: Iterable[str] | None = None,
    ) -> list[GameRecord]:
        """Return games in store order (``end_ts`` descending once finalized)."""
        query = f"SELECT {', '.join(GAME_COLUMNS)} FROM games"
        params: list[object] = []
        if end_dates is not None:
            dates = sorted(set(end_dates))
            if not dates:
                return []
            query += f" WHERE end_date IN ({', '.join('?' for _ in dates)})"
            params.extend(dates)
        query += " ORDER BY store_order NULLS FIRST, end_ts DESC NULLS LAST, url"
        rows = _rows_to_dicts(self._conn.execute(query, params))
        return [GameRecord.model_validate(row) for row in rows]

    def fetch_max_end_ts(self) -> int | None:
        row = self._conn.execute("SELECT MAX(end_ts) FROM games").fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def fetch_max_ingest_seq(self) -> int | None:
        row = self._conn.execute("SELECT MAX(ingest_seq) FROM games").fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def fetch_end_dates_ingested_since(self, ingest_seq: int) -> set[str]:
        """Dates of games written after the row numbered ``ingest_seq``."""
        rows = self._conn.execute(
            "SELECT DISTINCT end_date FROM games WHERE ingest_seq > ? AND end_date IS NOT NULL",
            [ingest_seq],
        ).fetchall()
        return {str(row[0]) for row in rows}

    def fetch_all_end_dates(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT DISTINCT end_date FROM games WHERE end_date IS NOT NULL ORDER BY end_date"
        ).fetchall()
        return [str(row[0]) for row in rows]


def _game_values(record: GameRecord) -> tuple[object, ...]:
    row = record.to_row()
    return tuple(row.get(column) for column in GAME_COLUMNS)


__all__ = ["DuckDbGameRepository"]
