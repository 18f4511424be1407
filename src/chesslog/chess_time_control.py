"""Time control parsing helpers."""

from __future__ import annotations

from dataclasses import dataclass

_DEFAULT_ESTIMATE_MOVES = 40


@dataclass(frozen=True, slots=True)
class ChessTimeControl:
    """Represents a chess.com time control value.

    Attributes:
        base_seconds: Starting clock in seconds (seconds per period for daily games).
        increment_seconds: Seconds added after each move.
        moves_per_period: Moves per period for daily controls (``"1/86400"``), else None.
    """

    base_seconds: int
    increment_seconds: int = 0
    moves_per_period: int | None = None

    @classmethod
    def parse(cls, value: str | None) -> ChessTimeControl | None:
        """Parse ``"N"``, ``"N+I"`` or ``"M/S"``; return None for anything else."""
        normalized = (value or "").strip()
        if not normalized or normalized == "-":
            return None
        for parser in (_parse_plus, _parse_seconds, _parse_slash):
            parsed = parser(normalized)
            if parsed is not None:
                return parsed
        return None

    @property
    def is_daily(self) -> bool:
        return self.moves_per_period is not None

    def as_str(self) -> str:
        """Return the chess.com string representation."""
        if self.moves_per_period is not None:
            return f"{self.moves_per_period}/{self.base_seconds}"
        if self.increment_seconds:
            return f"{self.base_seconds}+{self.increment_seconds}"
        return str(self.base_seconds)

    def __str__(self) -> str:
        return self.as_str()

    def estimated_total_seconds(self, moves: int = _DEFAULT_ESTIMATE_MOVES) -> int:
        """Return an estimated per-player duration in seconds for bucketing."""
        return self.base_seconds + self.increment_seconds * moves


def _parse_plus(value: str) -> ChessTimeControl | None:
    if "+" not in value:
        return None
    base_str, increment_str = value.split("+", 1)
    if base_str.isdigit() and increment_str.isdigit():
        return ChessTimeControl(base_seconds=int(base_str), increment_seconds=int(increment_str))
    return None


def _parse_seconds(value: str) -> ChessTimeControl | None:
    if value.isdigit():
        return ChessTimeControl(base_seconds=int(value))
    return None


def _parse_slash(value: str) -> ChessTimeControl | None:
    if value.count("/") != 1:
        return None
    moves_str, seconds_str = value.split("/", 1)
    if moves_str.isdigit() and seconds_str.isdigit():
        return ChessTimeControl(
            base_seconds=int(seconds_str),
            moves_per_period=int(moves_str),
        )
    return None
