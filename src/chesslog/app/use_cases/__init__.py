"""Application use-case entrypoints."""

from chesslog.app.use_cases.pipeline_run import (
    JOBS,
    backfill_history,
    build_rating_calendar,
    fetch_new_games,
    process_callback_queue,
    rebuild_daily_stats,
    requeue_failed_callbacks,
    run_job,
    update_daily_stats,
    update_profile_stats,
    update_rating_calendar,
)

__all__ = [
    "JOBS",
    "backfill_history",
    "build_rating_calendar",
    "fetch_new_games",
    "process_callback_queue",
    "rebuild_daily_stats",
    "requeue_failed_callbacks",
    "run_job",
    "update_daily_stats",
    "update_profile_stats",
    "update_rating_calendar",
]
