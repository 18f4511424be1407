"""End-of-day rating per format for every calendar date."""

from __future__ import annotations

import datetime
from collections.abc import Callable
from zoneinfo import ZoneInfo

from chesslog.config import Settings
from chesslog.daily_stats import end_of_day_ts
from chesslog.db.repositories import Repositories
from chesslog.rating_resolver import RatingResolver
from chesslog.utils import Now, get_logger

logger = get_logger(__name__)

OPERATION = "rating_calendar"


class RatingCalendar:
    """Write one resolved rating per (date, format) from the first game onward."""

    def __init__(
        self,
        repositories: Repositories,
        settings: Settings,
        *,
        today: Callable[[], datetime.date] | None = None,
    ) -> None:
        self._repos = repositories
        self._settings = settings
        self._today = today or self._local_today

    def build(self) -> dict[str, object]:
        """Rebuild the whole calendar."""
        with self._repos.lock(OPERATION, self._settings.lock_ttl_s):
            self._repos.rating_calendar.clear()
            return self._write_from(None)

    def update(self) -> dict[str, object]:
        """Recompute from the day before the last stored date."""
        with self._repos.lock(OPERATION, self._settings.lock_ttl_s):
            last = self._repos.rating_calendar.fetch_last_date()
            start = (
                datetime.date.fromisoformat(last) - datetime.timedelta(days=1)
                if last is not None
                else None
            )
            return self._write_from(start)

    def _write_from(self, start: datetime.date | None) -> dict[str, object]:
        resolver = RatingResolver.from_repositories(self._repos)
        if start is None:
            start = self._first_date(resolver)
        end = self._today()
        if start is None or start > end:
            logger.info("Rating calendar: nothing to write")
            return {"start": None, "end": end.isoformat(), "rows": 0}
        entries = []
        day = start
        while day <= end:
            cutoff = end_of_day_ts(day, self._settings.timezone)
            for fmt in resolver.formats:
                entries.append((day.isoformat(), fmt, resolver.resolve(fmt, cutoff)))
            day += datetime.timedelta(days=1)
        rows = self._repos.rating_calendar.upsert_entries(entries)
        logger.info("Rating calendar: %s rows from %s to %s", rows, start, end)
        return {"start": start.isoformat(), "end": end.isoformat(), "rows": rows}

    def _first_date(self, resolver: RatingResolver) -> datetime.date | None:
        dates = self._repos.games.fetch_all_end_dates()
        if dates:
            return datetime.date.fromisoformat(dates[0])
        first_ts = resolver.first_timestamp()
        if first_ts is None:
            return None
        return datetime.datetime.fromtimestamp(
            first_ts, tz=ZoneInfo(self._settings.timezone)
        ).date()

    def _local_today(self) -> datetime.date:
        return Now.as_datetime().astimezone(ZoneInfo(self._settings.timezone)).date()
