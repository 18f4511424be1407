"""Fixed-shape record for one finished game."""

from __future__ import annotations

from pydantic import BaseModel

from chesslog.game_format import GameFormat

SCHEMA_VERSION = 1


class GameRecord(BaseModel):  # pylint: disable=too-many-instance-attributes
    """One enriched game, keyed by its canonical url.

    Fields are grouped by where they come from. Everything except the core
    identity is optional: a field that cannot be derived stays None and the
    record is still stored.
    """

    # core (bulk archive payload)
    url: str
    game_id: str | None = None
    game_type: str | None = None
    username: str
    start_ts: int | None = None
    end_ts: int | None = None
    end_date: str | None = None
    rules: str | None = None
    time_class: str | None = None
    time_control: str | None = None
    base_time_s: int | None = None
    increment_s: int | None = None
    moves_per_period: int | None = None
    format: GameFormat | None = None
    rated: bool | None = None
    white_username: str | None = None
    white_rating: int | None = None
    white_result: str | None = None
    white_accuracy: float | None = None
    black_username: str | None = None
    black_rating: int | None = None
    black_result: str | None = None
    black_accuracy: float | None = None
    fen: str | None = None
    pgn: str | None = None

    # PGN-derived
    event: str | None = None
    site: str | None = None
    pgn_date: str | None = None
    round: str | None = None
    result: str | None = None
    eco: str | None = None
    eco_url: str | None = None
    opening: str | None = None
    termination: str | None = None

    # clock-derived (only when move retention is enabled)
    moves: list[str] | None = None
    clocks: list[float] | None = None
    move_times: list[float] | None = None
    ply_count: int | None = None
    duration_s: float | None = None

    # perspective
    my_color: str | None = None
    my_rating: int | None = None
    my_result: str | None = None
    my_outcome: float | None = None
    my_accuracy: float | None = None
    opponent_username: str | None = None
    opponent_rating: int | None = None
    opponent_result: str | None = None
    opponent_accuracy: float | None = None

    # callback-derived
    my_rating_change: int | None = None
    opponent_rating_change: int | None = None
    my_pregame_rating: int | None = None
    opponent_pregame_rating: int | None = None
    opponent_country: str | None = None
    opponent_membership: str | None = None
    callback_enriched_at: int | None = None

    # processing metadata
    processed_at: int | None = None
    ingest_seq: int | None = None
    schema_version: int = SCHEMA_VERSION

    def to_row(self) -> dict[str, object]:
        """Return a plain dict suitable for the ``games`` table."""
        row = self.model_dump()
        row["format"] = self.format.value if self.format is not None else None
        return row


GAME_COLUMNS: tuple[str, ...] = tuple(GameRecord.model_fields)

CALLBACK_COLUMNS: frozenset[str] = frozenset(
    {
        "my_rating_change",
        "opponent_rating_change",
        "my_pregame_rating",
        "opponent_pregame_rating",
        "my_accuracy",
        "opponent_accuracy",
        "white_accuracy",
        "black_accuracy",
        "opponent_country",
        "opponent_membership",
        "callback_enriched_at",
    }
)
