"""Utility exports for the chesslog package."""

from .generate_id import generate_id
from .logger import Logger, get_logger, set_level
from .normalize_string import normalize_string
from .now import Now
from .to_int import to_float, to_int

__all__ = [
    "Logger",
    "Now",
    "generate_id",
    "get_logger",
    "normalize_string",
    "set_level",
    "to_float",
    "to_int",
]
