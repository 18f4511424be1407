"""Game format (speed class / variant) classification."""

from __future__ import annotations

import re
from enum import StrEnum

from chesslog.chess_time_control import ChessTimeControl
from chesslog.config import FormatThresholds

DAILY_URL_PATTERN = re.compile(r"/game/daily/", re.IGNORECASE)
STANDARD_RULES = "chess"


class GameFormat(StrEnum):
    """Closed set of formats a stored game can belong to.

    ``VARIANT`` and ``DAILY_VARIANT`` catch rule names chess.com may add later.
    """

    BULLET = "bullet"
    BLITZ = "blitz"
    RAPID = "rapid"
    DAILY = "daily"
    DAILY_960 = "daily960"
    LIVE_960 = "live960"
    BUGHOUSE = "bughouse"
    CRAZYHOUSE = "crazyhouse"
    KING_OF_THE_HILL = "kingofthehill"
    THREE_CHECK = "threecheck"
    DAILY_VARIANT = "daily_variant"
    VARIANT = "variant"


_LIVE_VARIANTS = {
    "chess960": GameFormat.LIVE_960,
    "bughouse": GameFormat.BUGHOUSE,
    "crazyhouse": GameFormat.CRAZYHOUSE,
    "kingofthehill": GameFormat.KING_OF_THE_HILL,
    "threecheck": GameFormat.THREE_CHECK,
}
_UPSTREAM_TIME_CLASSES = {
    "bullet": GameFormat.BULLET,
    "blitz": GameFormat.BLITZ,
    "rapid": GameFormat.RAPID,
    "daily": GameFormat.DAILY,
}

# Formats reported by the /stats endpoint, keyed by its section names.
STATS_KEY_FORMATS = {
    "chess_bullet": GameFormat.BULLET,
    "chess_blitz": GameFormat.BLITZ,
    "chess_rapid": GameFormat.RAPID,
    "chess_daily": GameFormat.DAILY,
    "chess960_daily": GameFormat.DAILY_960,
}


def classify_format(
    *,
    url: str | None,
    rules: str | None,
    time_class: str | None,
    time_control: ChessTimeControl | None,
    thresholds: FormatThresholds | None = None,
) -> GameFormat | None:
    """Classify a game into a ``GameFormat``.

    Precedence: daily URL, non-standard rules, upstream time class, then the
    estimated duration ``base + increment * estimate_moves`` against thresholds.
    """
    normalized_rules = (rules or STANDARD_RULES).strip().lower()
    if url and DAILY_URL_PATTERN.search(url):
        return _classify_daily(normalized_rules)
    if normalized_rules != STANDARD_RULES:
        return _LIVE_VARIANTS.get(normalized_rules, GameFormat.VARIANT)
    upstream = _UPSTREAM_TIME_CLASSES.get((time_class or "").strip().lower())
    if upstream is not None:
        return upstream
    if time_control is None:
        return None
    return classify_time_control(time_control, thresholds or FormatThresholds())


def classify_time_control(
    time_control: ChessTimeControl,
    thresholds: FormatThresholds,
) -> GameFormat:
    """Bucket a time control by estimated duration."""
    if time_control.is_daily:
        return GameFormat.DAILY
    total = time_control.estimated_total_seconds(thresholds.estimate_moves)
    if total < thresholds.bullet_max_s:
        return GameFormat.BULLET
    if total < thresholds.blitz_max_s:
        return GameFormat.BLITZ
    return GameFormat.RAPID


def _classify_daily(rules: str) -> GameFormat:
    if rules == STANDARD_RULES:
        return GameFormat.DAILY
    if rules == "chess960":
        return GameFormat.DAILY_960
    return GameFormat.DAILY_VARIANT
