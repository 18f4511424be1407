from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATA_DIR = Path(os.getenv("CHESSLOG_DATA_DIR", "data"))
DEFAULT_USER_AGENT = "chesslog/0.1 (+https://github.com/chesslog/chesslog)"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class ChesscomApiSettings:
    """Chess.com public API configuration."""

    base_url: str = os.getenv("CHESSCOM_API_BASE_URL", "https://api.chess.com/pub")
    callback_base_url: str = os.getenv("CHESSCOM_CALLBACK_BASE_URL", "https://www.chess.com")
    user_agent: str = os.getenv("CHESSCOM_USER_AGENT", DEFAULT_USER_AGENT)
    timeout_s: int = int(os.getenv("CHESSCOM_TIMEOUT_S", "20"))
    rate_limit_max_requests: int = int(os.getenv("CHESSCOM_RATE_LIMIT_MAX_REQUESTS", "30"))
    rate_limit_window_s: float = float(os.getenv("CHESSCOM_RATE_LIMIT_WINDOW_S", "60"))
    rate_limit_margin_s: float = float(os.getenv("CHESSCOM_RATE_LIMIT_MARGIN_S", "0.1"))
    max_retries: int = int(os.getenv("CHESSCOM_MAX_RETRIES", "3"))
    retry_base_delay_s: float = float(os.getenv("CHESSCOM_RETRY_BASE_DELAY_S", "1.0"))
    default_retry_after_s: float = float(os.getenv("CHESSCOM_DEFAULT_RETRY_AFTER_S", "60"))
    callback_min_interval_s: float = float(os.getenv("CHESSCOM_CALLBACK_MIN_INTERVAL_S", "1.0"))


@dataclass(slots=True)
class FormatThresholds:
    """Upper bounds (exclusive) used to bucket live games by estimated duration."""

    bullet_max_s: int = int(os.getenv("CHESSLOG_BULLET_MAX_S", "180"))
    blitz_max_s: int = int(os.getenv("CHESSLOG_BLITZ_MAX_S", "600"))
    estimate_moves: int = int(os.getenv("CHESSLOG_ESTIMATE_MOVES", "40"))


@dataclass(slots=True)
class Settings:
    """Central configuration for ingestion, enrichment, and aggregation jobs."""

    username: str = os.getenv("CHESSCOM_USERNAME", os.getenv("CHESSLOG_USERNAME", ""))
    api_token: str = os.getenv("CHESSLOG_API_TOKEN", "local-dev-token")

    api: ChesscomApiSettings = field(default_factory=ChesscomApiSettings)
    thresholds: FormatThresholds = field(default_factory=FormatThresholds)

    duckdb_path: Path = Path(os.getenv("CHESSLOG_DUCKDB_PATH", DEFAULT_DATA_DIR / "chesslog.duckdb"))
    batch_size: int = int(os.getenv("CHESSLOG_BATCH_SIZE", "100"))
    job_time_budget_s: float = float(os.getenv("CHESSLOG_JOB_TIME_BUDGET_S", "270"))
    lock_ttl_s: int = int(os.getenv("CHESSLOG_LOCK_TTL_S", "600"))
    retain_moves: bool = _env_bool("CHESSLOG_RETAIN_MOVES", "1")
    store_pgn: bool = _env_bool("CHESSLOG_STORE_PGN", "0")
    timezone: str = os.getenv("CHESSLOG_TIMEZONE", "UTC")
    callback_batch_size: int = int(os.getenv("CHESSLOG_CALLBACK_BATCH_SIZE", "25"))
    callback_max_attempts: int = int(os.getenv("CHESSLOG_CALLBACK_MAX_ATTEMPTS", "3"))
    callback_delay_s: float = float(os.getenv("CHESSLOG_CALLBACK_DELAY_S", "0.5"))
    daily_stats_safety_days: int = int(os.getenv("CHESSLOG_DAILY_STATS_SAFETY_DAYS", "3"))
    log_level: str = os.getenv("CHESSLOG_LOG_LEVEL", "INFO")

    def ensure_dirs(self) -> None:
        """Create the directory holding the DuckDB file."""
        self.duckdb_path.parent.mkdir(parents=True, exist_ok=True)


_SETTINGS_FIELDS = {item.name for item in fields(Settings)}
_API_FIELDS = {item.name for item in fields(ChesscomApiSettings)}
_THRESHOLD_FIELDS = {item.name for item in fields(FormatThresholds)}


def _apply_override(settings: Settings, name: str, value: object) -> None:
    if name in _SETTINGS_FIELDS:
        setattr(settings, name, value)
    elif name in _API_FIELDS:
        setattr(settings.api, name, value)
    elif name in _THRESHOLD_FIELDS:
        setattr(settings.thresholds, name, value)
    else:
        raise TypeError(f"get_settings() got an unexpected keyword argument '{name}'")


def get_settings(**overrides: object) -> Settings:
    """Build settings from the environment and apply keyword overrides.

    Keys may name top-level fields or fields of the nested API and threshold
    groups, e.g. ``get_settings(username="hikaru", max_retries=0)``.
    """
    load_dotenv()
    settings = Settings()
    for name, value in overrides.items():
        _apply_override(settings, name, value)
    if isinstance(settings.duckdb_path, str):
        settings.duckdb_path = Path(settings.duckdb_path)
    settings.ensure_dirs()
    return settings
