"""Job entry points: one function per scheduled operation."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

from chesslog.callback_enricher import CallbackEnricher, requeue_failed
from chesslog.chess_clients import ChesscomClient, build_client
from chesslog.config import Settings, get_settings
from chesslog.daily_stats import DailyStatsAggregator
from chesslog.db.duckdb_store import get_connection, init_schema
from chesslog.db.repositories import Repositories, build_repositories
from chesslog.ingestion_controller import IngestionController, IngestionMode
from chesslog.profile_stats import update_profile_stats as _update_profile_stats
from chesslog.rating_calendar import RatingCalendar
from chesslog.utils import get_logger, set_level

logger = get_logger(__name__)


@contextmanager
def open_repositories(settings: Settings) -> Iterator[Repositories]:
    """Open the DuckDB store, migrate it, and yield bound repositories."""
    conn = get_connection(settings.duckdb_path)
    try:
        init_schema(conn)
        yield build_repositories(conn)
    finally:
        conn.close()


def _resolve(settings: Settings | None, client: Any | None) -> tuple[Settings, Any]:
    resolved = settings or get_settings()
    return resolved, client or build_client(resolved)


def fetch_new_games(
    settings: Settings | None = None,
    client: ChesscomClient | None = None,
) -> dict[str, object]:
    """Ingest games newer than the newest stored game."""
    settings, client = _resolve(settings, client)
    with open_repositories(settings) as repos:
        summary = IngestionController(client, repos, settings).run(IngestionMode.INCREMENTAL)
    return summary.as_dict()


def backfill_history(
    settings: Settings | None = None,
    client: ChesscomClient | None = None,
) -> dict[str, object]:
    """Walk every archive oldest first, storing games not seen before."""
    settings, client = _resolve(settings, client)
    with open_repositories(settings) as repos:
        summary = IngestionController(client, repos, settings).run(IngestionMode.BACKFILL)
    return summary.as_dict()


def update_profile_stats(
    settings: Settings | None = None,
    client: ChesscomClient | None = None,
) -> dict[str, object]:
    settings, client = _resolve(settings, client)
    with open_repositories(settings) as repos:
        return _update_profile_stats(client, repos, lock_ttl_s=settings.lock_ttl_s)


def process_callback_queue(
    settings: Settings | None = None,
    client: ChesscomClient | None = None,
    limit: int | None = None,
) -> dict[str, object]:
    settings, client = _resolve(settings, client)
    with open_repositories(settings) as repos:
        summary = CallbackEnricher(client, repos, settings).process(limit)
    return summary.as_dict()


def requeue_failed_callbacks(settings: Settings | None = None) -> dict[str, object]:
    """Give callback items that exhausted their attempts another round."""
    settings = settings or get_settings()
    with open_repositories(settings) as repos:
        return requeue_failed(repos, lock_ttl_s=settings.lock_ttl_s)


def rebuild_daily_stats(settings: Settings | None = None) -> dict[str, object]:
    settings = settings or get_settings()
    with open_repositories(settings) as repos:
        return DailyStatsAggregator(repos, settings).rebuild().as_dict()


def update_daily_stats(settings: Settings | None = None) -> dict[str, object]:
    settings = settings or get_settings()
    with open_repositories(settings) as repos:
        return DailyStatsAggregator(repos, settings).update().as_dict()


def build_rating_calendar(settings: Settings | None = None) -> dict[str, object]:
    settings = settings or get_settings()
    with open_repositories(settings) as repos:
        return RatingCalendar(repos, settings).build()


def update_rating_calendar(settings: Settings | None = None) -> dict[str, object]:
    settings = settings or get_settings()
    with open_repositories(settings) as repos:
        return RatingCalendar(repos, settings).update()


JOBS: dict[str, Callable[[Settings], dict[str, object]]] = {
    "fetch_new_games": fetch_new_games,
    "backfill_history": backfill_history,
    "update_profile_stats": update_profile_stats,
    "process_callback_queue": process_callback_queue,
    "requeue_failed_callbacks": requeue_failed_callbacks,
    "rebuild_daily_stats": rebuild_daily_stats,
    "update_daily_stats": update_daily_stats,
    "build_rating_calendar": build_rating_calendar,
    "update_rating_calendar": update_rating_calendar,
}


def _raise_unsupported_job(job: str) -> NoReturn:
    raise ValueError(f"Unsupported job: {job}")


def run_job(name: str, settings: Settings | None = None) -> dict[str, object]:
    """Run the named job and return its summary.

    Raises:
        ValueError: When ``name`` is not a known job.
    """
    job = JOBS.get(name)
    if job is None:
        _raise_unsupported_job(name)
    settings = settings or get_settings()
    set_level(settings.log_level)
    logger.info("Running job %s", name)
    return job(settings)
