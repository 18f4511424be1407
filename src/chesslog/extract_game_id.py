"""Helpers for extracting game identifiers from chess.com game urls."""

from __future__ import annotations

import re

GAME_URL_PATTERN = re.compile(r"game/(live|daily)/(\d+)")


def parse_game_url(url: str | None) -> tuple[str, str] | None:
    """Return ``(game_type, game_id)`` for a chess.com game url.

    >>> parse_game_url("https://www.chess.com/game/live/123456")
    ('live', '123456')
    >>> parse_game_url("https://example.com/x") is None
    True
    """
    match = GAME_URL_PATTERN.search(url or "")
    if not match:
        return None
    return match.group(1), match.group(2)
