"""Chess.com result vocabulary mapped to numeric outcomes."""

from __future__ import annotations

from enum import StrEnum


class ChessPlayerColor(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> ChessPlayerColor:
        return ChessPlayerColor.BLACK if self is ChessPlayerColor.WHITE else ChessPlayerColor.WHITE


WIN_CODES = frozenset({"win"})
DRAW_CODES = frozenset(
    {
        "agreed",
        "repetition",
        "stalemate",
        "insufficient",
        "50move",
        "timevsinsufficient",
    }
)
LOSS_CODES = frozenset(
    {
        "resigned",
        "checkmated",
        "timeout",
        "abandoned",
        "lose",
        "kingofthehill",
        "threecheck",
        "bughousepartnerlose",
    }
)


def outcome_for_result(result: str | None) -> float | None:
    """Return 1, 0.5 or 0 for a chess.com per-player result code.

    >>> outcome_for_result("checkmated")
    0.0
    >>> outcome_for_result("unknown") is None
    True
    """
    code = (result or "").strip().lower()
    if code in WIN_CODES:
        return 1.0
    if code in DRAW_CODES:
        return 0.5
    if code in LOSS_CODES:
        return 0.0
    return None
