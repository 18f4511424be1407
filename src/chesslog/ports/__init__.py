"""Port interfaces for the chesslog application."""

from chesslog.ports.repositories import (  # noqa: F401
    GameRepository,
    QueueRepository,
    RatingRepository,
)
