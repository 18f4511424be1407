"""PGN header parsing and normalization."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from io import StringIO

import chess.pgn

from chesslog.chess_clock import clock_from_comment
from chesslog.utils import get_logger, to_int

logger = get_logger(__name__)

_PGN_DATE_FORMATS = ("%Y.%m.%d", "%Y-%m-%d")
_PGN_TIME_FORMATS = ("%H:%M:%S", "%H:%M")


@dataclass(slots=True)
class PgnHeaders:  # pylint: disable=too-many-instance-attributes
    """Canonical subset of the PGN tag pairs chess.com emits."""

    event: str | None = None
    site: str | None = None
    date: datetime.date | None = None
    round: str | None = None
    white: str | None = None
    black: str | None = None
    result: str | None = None
    white_elo: int | None = None
    black_elo: int | None = None
    eco: str | None = None
    eco_url: str | None = None
    termination: str | None = None
    time_control: str | None = None
    utc_date: datetime.date | None = None
    utc_time: datetime.time | None = None
    start_time: datetime.time | None = None
    end_date: datetime.date | None = None
    end_time: datetime.time | None = None

    @property
    def opening(self) -> str | None:
        """Opening name taken from the ECOUrl slug."""
        return opening_from_eco_url(self.eco_url)

    @classmethod
    def from_pgn_string(cls, pgn: str | None) -> PgnHeaders:
        """Parse the header block of a PGN, tolerating missing or malformed tags.

        Parameters
        ----------
        pgn : str | None
            PGN text; only the tag-pair section is read.

        Returns
        -------
        PgnHeaders
            Parsed headers; unreadable fields are left as None.
        """
        if not pgn or not pgn.lstrip().startswith("["):
            return cls()
        try:
            headers = chess.pgn.read_headers(StringIO(pgn))
        except ValueError as exc:
            logger.warning("Unreadable PGN header block: %s", exc)
            return cls()
        if headers is None:
            return cls()
        return cls.from_chess_pgn_headers(headers)

    @classmethod
    def from_chess_pgn_headers(cls, headers: chess.pgn.Headers) -> PgnHeaders:
        """Create PgnHeaders from python-chess headers."""
        return cls(
            event=_text(headers.get("Event")),
            site=_text(headers.get("Site")),
            date=parse_pgn_date(headers.get("Date")),
            round=_text(headers.get("Round")),
            white=_text(headers.get("White")),
            black=_text(headers.get("Black")),
            result=_text(headers.get("Result")),
            white_elo=to_int(headers.get("WhiteElo")),
            black_elo=to_int(headers.get("BlackElo")),
            eco=_text(headers.get("ECO")),
            eco_url=_text(headers.get("ECOUrl")),
            termination=_text(headers.get("Termination")),
            time_control=_text(headers.get("TimeControl")),
            utc_date=parse_pgn_date(headers.get("UTCDate")),
            utc_time=parse_pgn_time(headers.get("UTCTime")),
            start_time=parse_pgn_time(headers.get("StartTime")),
            end_date=parse_pgn_date(headers.get("EndDate")),
            end_time=parse_pgn_time(headers.get("EndTime")),
        )


@dataclass(slots=True)
class PgnMoves:
    """SAN moves and remaining-clock readings from the mainline."""

    sans: list[str] = field(default_factory=list)
    clocks: list[float] = field(default_factory=list)


def read_pgn_moves(pgn: str | None) -> PgnMoves:
    """Read mainline SAN moves and ``[%clk]`` annotations.

    Clocks are only kept when every ply carries one, so indexes line up with
    plies. A game python-chess cannot replay yields whatever was read before
    the error.
    """
    if not pgn or not pgn.lstrip().startswith("["):
        return PgnMoves()
    try:
        game = chess.pgn.read_game(StringIO(pgn))
    except (ValueError, AssertionError) as exc:
        logger.warning("Unreadable PGN movetext: %s", exc)
        return PgnMoves()
    if game is None:
        return PgnMoves()
    moves = PgnMoves()
    clocks: list[float | None] = []
    for node in game.mainline():
        moves.sans.append(node.san())
        clocks.append(clock_from_comment(node.comment))
    if clocks and all(clock is not None for clock in clocks):
        moves.clocks = [float(clock) for clock in clocks if clock is not None]
    return moves


def opening_from_eco_url(eco_url: str | None) -> str | None:
    """Return a readable opening name from a chess.com ECOUrl.

    >>> opening_from_eco_url("https://www.chess.com/openings/Sicilian-Defense-Najdorf")
    'Sicilian Defense Najdorf'
    """
    if not eco_url:
        return None
    slug = eco_url.rstrip("/").rsplit("/", 1)[-1]
    if not slug or slug.startswith("http"):
        return None
    name = slug.replace("-", " ").strip()
    return name or None


def parse_pgn_date(value: str | None) -> datetime.date | None:
    text = _text(value)
    if text is None or "?" in text:
        return None
    for fmt in _PGN_DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_pgn_time(value: str | None) -> datetime.time | None:
    text = _text(value)
    if text is None:
        return None
    # Trailing zone labels ("12:00:01 PST") are ignored.
    text = text.split()[0]
    for fmt in _PGN_TIME_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    return None


def _text(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == "?":
        return None
    return text
