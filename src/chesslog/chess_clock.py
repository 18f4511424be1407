"""Clock annotation parsing and per-move time accounting."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

CLK_PATTERN = re.compile(r"\[%clk\s+([0-9:.]+)\]")
CLOCK_PARTS_FULL = 3
CLOCK_PARTS_SHORT = 2


def parse_clock(token: str | None) -> float | None:
    """Parse ``H:M:S``, ``M:S`` or bare seconds into seconds (0.1 s precision).

    >>> parse_clock("0:02:59.9")
    179.9
    >>> parse_clock("1:05")
    65.0
    >>> parse_clock("bad") is None
    True
    """
    if token is None:
        return None
    parts = token.strip().split(":")
    if len(parts) == CLOCK_PARTS_FULL:
        hours, minutes, seconds = parts
    elif len(parts) == CLOCK_PARTS_SHORT:
        hours, (minutes, seconds) = "0", parts
    elif len(parts) == 1:
        hours, minutes, seconds = "0", "0", parts[0]
    else:
        return None
    try:
        total = float(hours) * 3600 + float(minutes) * 60 + float(seconds)
    except ValueError:
        return None
    if total < 0:
        return None
    return round(total, 1)


def format_clock(seconds: float) -> str:
    """Format seconds as ``H:MM:SS.s`` (or ``M:SS.s`` below one hour)."""
    tenths = int(round(max(seconds, 0.0) * 10))
    hours, rem = divmod(tenths, 36000)
    minutes, rem = divmod(rem, 600)
    secs, tenth = divmod(rem, 10)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}.{tenth}"
    return f"{minutes}:{secs:02d}.{tenth}"


def clock_from_comment(comment: str | None) -> float | None:
    """Return clock seconds parsed from a PGN move comment, if present."""
    match = CLK_PATTERN.search(comment or "")
    if not match:
        return None
    return parse_clock(match.group(1))


@dataclass(frozen=True, slots=True)
class MoveTimes:
    """Per-ply time spent with per-player totals."""

    per_move: list[float]
    white_total: float
    black_total: float

    @property
    def duration(self) -> float:
        return max(self.white_total, self.black_total)


def compute_move_times(
    clocks: Sequence[float],
    base_seconds: float,
    increment_seconds: float = 0.0,
) -> MoveTimes:
    """Compute time spent on each ply from remaining-clock readings.

    The first move of each player is measured against the base time; later
    plies compare with the same player's clock two plies back and add the
    increment. Negative values are clamped to zero.
    """
    per_move: list[float] = []
    for index, clock in enumerate(clocks):
        if index < 2:
            spent = base_seconds - clock
        else:
            spent = clocks[index - 2] - clock + increment_seconds
        per_move.append(round(max(spent, 0.0), 1))
    white_total = round(sum(per_move[0::2]), 1)
    black_total = round(sum(per_move[1::2]), 1)
    return MoveTimes(per_move=per_move, white_total=white_total, black_total=black_total)
