"""chesslog package entrypoints."""

from chesslog.app.use_cases.pipeline_run import run_job
from chesslog.config import Settings, get_settings
from chesslog.enrich_game import enrich_game
from chesslog.game_record import GameRecord

__all__ = ["GameRecord", "Settings", "enrich_game", "get_settings", "run_job"]
