"""Turn one raw archive game into a fully derived ``GameRecord``."""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from zoneinfo import ZoneInfo

from chesslog.chess_clock import compute_move_times
from chesslog.chess_time_control import ChessTimeControl
from chesslog.config import Settings
from chesslog.extract_game_id import parse_game_url
from chesslog.game_format import classify_format
from chesslog.game_record import GameRecord
from chesslog.game_result import ChessPlayerColor, outcome_for_result
from chesslog.pgn_headers import PgnHeaders, PgnMoves, read_pgn_moves
from chesslog.utils import Now, get_logger, normalize_string, to_float, to_int

logger = get_logger(__name__)


def enrich_game(
    raw: Mapping[str, object],
    username: str,
    settings: Settings | None = None,
    processed_at: int | None = None,
) -> GameRecord:
    """Build a ``GameRecord`` from a chess.com archive game.

    Args:
        raw: Game object as returned by a monthly archive endpoint.
        username: Tracked player; perspective fields are relative to them.
        settings: Active settings (thresholds, move retention, timezone).
        processed_at: Processing timestamp in epoch seconds; defaults to now.

    Returns:
        The enriched record. Sub-fields that fail to parse are left as None.

    Raises:
        ValueError: When the game has no url, since it cannot be keyed.
    """

    settings = settings or Settings()
    url = _text(raw.get("url"))
    if url is None:
        raise ValueError("Archive game without url")
    pgn = _text(raw.get("pgn"))
    headers = PgnHeaders.from_pgn_string(pgn)
    time_control_text = _text(raw.get("time_control")) or headers.time_control
    time_control = ChessTimeControl.parse(time_control_text)
    game_ref = parse_game_url(url)
    white = _player(raw, "white")
    black = _player(raw, "black")
    accuracies = raw.get("accuracies") if isinstance(raw.get("accuracies"), Mapping) else {}

    record = GameRecord(
        url=url,
        game_id=game_ref[1] if game_ref else None,
        game_type=game_ref[0] if game_ref else None,
        username=username,
        rules=_text(raw.get("rules")),
        time_class=_text(raw.get("time_class")),
        time_control=time_control_text,
        base_time_s=time_control.base_seconds if time_control else None,
        increment_s=time_control.increment_seconds if time_control else None,
        moves_per_period=time_control.moves_per_period if time_control else None,
        format=classify_format(
            url=url,
            rules=_text(raw.get("rules")),
            time_class=_text(raw.get("time_class")),
            time_control=time_control,
            thresholds=settings.thresholds,
        ),
        rated=raw.get("rated") if isinstance(raw.get("rated"), bool) else None,
        white_username=_text(white.get("username")) or headers.white,
        white_rating=to_int(white.get("rating")) or headers.white_elo,
        white_result=_text(white.get("result")),
        white_accuracy=to_float(accuracies.get("white")),
        black_username=_text(black.get("username")) or headers.black,
        black_rating=to_int(black.get("rating")) or headers.black_elo,
        black_result=_text(black.get("result")),
        black_accuracy=to_float(accuracies.get("black")),
        fen=_text(raw.get("fen")),
        pgn=pgn if settings.store_pgn else None,
        event=headers.event,
        site=headers.site,
        pgn_date=headers.date.isoformat() if headers.date else None,
        round=headers.round,
        result=headers.result,
        eco=headers.eco,
        eco_url=headers.eco_url,
        opening=headers.opening,
        termination=headers.termination,
        processed_at=processed_at if processed_at is not None else Now.as_seconds(),
    )
    duration = _apply_clock_fields(record, pgn, time_control, settings.retain_moves)
    _apply_time_anchors(record, headers, raw, duration, settings.timezone)
    _apply_perspective(record, username)
    return record


def _apply_clock_fields(
    record: GameRecord,
    pgn: str | None,
    time_control: ChessTimeControl | None,
    retain_moves: bool,
) -> float | None:
    """Fill move, clock and duration fields; return the duration in seconds."""
    if not retain_moves:
        return None
    moves: PgnMoves = read_pgn_moves(pgn)
    if not moves.sans:
        return None
    record.moves = moves.sans
    record.ply_count = len(moves.sans)
    if not moves.clocks:
        return None
    record.clocks = moves.clocks
    if time_control is None or time_control.is_daily:
        return None
    times = compute_move_times(
        moves.clocks,
        base_seconds=time_control.base_seconds,
        increment_seconds=time_control.increment_seconds,
    )
    record.move_times = times.per_move
    record.duration_s = times.duration
    return times.duration


def _apply_time_anchors(
    record: GameRecord,
    headers: PgnHeaders,
    raw: Mapping[str, object],
    duration: float | None,
    timezone: str,
) -> None:
    """Resolve start/end timestamps, preferring PGN headers over epoch fields."""
    start = _combine(headers.utc_date, headers.utc_time) or _combine(
        headers.date, headers.start_time
    )
    end = _combine(headers.end_date, headers.end_time)
    if end is None and headers.end_time is not None:
        end = _end_from_time_of_day(headers)
    if end is None:
        end = to_int(raw.get("end_time"))
    if start is None:
        start = to_int(raw.get("start_time"))
    if start is None and end is not None and duration is not None:
        start = end - int(round(duration))
    if end is None and start is not None and duration is not None:
        end = start + int(round(duration))
    record.start_ts = start
    record.end_ts = end
    record.end_date = local_date_for(end, timezone) if end is not None else None
    if record.duration_s is None and start is not None and end is not None and end >= start:
        record.duration_s = float(end - start)


def _end_from_time_of_day(headers: PgnHeaders) -> int | None:
    """Anchor a bare EndTime to the start date, rolling over past midnight."""
    start_day = headers.utc_date or headers.date
    start_clock = headers.utc_time or headers.start_time
    if start_day is None or headers.end_time is None:
        return None
    end = _combine(start_day, headers.end_time)
    if end is not None and start_clock is not None and headers.end_time < start_clock:
        end += 86400
    return end


def _apply_perspective(record: GameRecord, username: str) -> None:
    """Fill ``my_*`` and ``opponent_*`` fields from the tracked player's side."""
    me = normalize_string(username)
    if me and normalize_string(record.white_username) == me:
        color = ChessPlayerColor.WHITE
    elif me and normalize_string(record.black_username) == me:
        color = ChessPlayerColor.BLACK
    else:
        logger.debug("User %s not found in game %s", username, record.url)
        return
    mine = _side(record, color)
    theirs = _side(record, color.opponent)
    record.my_color = color.value
    record.my_rating = mine["rating"]
    record.my_result = mine["result"]
    record.my_outcome = outcome_for_result(mine["result"])
    record.my_accuracy = mine["accuracy"]
    record.opponent_username = theirs["username"]
    record.opponent_rating = theirs["rating"]
    record.opponent_result = theirs["result"]
    record.opponent_accuracy = theirs["accuracy"]


def _side(record: GameRecord, color: ChessPlayerColor) -> dict[str, object]:
    prefix = color.value
    return {
        "username": getattr(record, f"{prefix}_username"),
        "rating": getattr(record, f"{prefix}_rating"),
        "result": getattr(record, f"{prefix}_result"),
        "accuracy": getattr(record, f"{prefix}_accuracy"),
    }


def local_date_for(timestamp: int, timezone: str = "UTC") -> str:
    """Return the ISO date of an epoch timestamp in the given timezone."""
    moment = datetime.datetime.fromtimestamp(timestamp, tz=ZoneInfo(timezone))
    return moment.date().isoformat()


def _combine(day: datetime.date | None, clock: datetime.time | None) -> int | None:
    if day is None or clock is None:
        return None
    moment = datetime.datetime.combine(day, clock, tzinfo=datetime.UTC)
    return int(moment.timestamp())


def _player(raw: Mapping[str, object], color: str) -> Mapping[str, object]:
    value = raw.get(color)
    return value if isinstance(value, Mapping) else {}


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
