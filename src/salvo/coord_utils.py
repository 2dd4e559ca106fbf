"""Human-readable cell names ("A1" .. "J10") for the zero-based (row, col) grid.

Rows are letters, columns are 1-based numbers. The client also accepts a
numeric "row,col" pair so coordinates copied out of the JSON API can be fired
at directly.
"""

import re
from typing import Tuple

from . import config as _cfg

_LAST_ROW = chr(ord("A") + _cfg.BOARD_SIZE - 1)

# Letter + 1-based column, e.g. "C7"
COORD_RE = re.compile(rf"^([A-{_LAST_ROW}])([1-9][0-9]?)$")
# Zero-based "row,col" or "row col", e.g. "2,6"
PAIR_RE = re.compile(r"^(\d{1,2})\s*[, ]\s*(\d{1,2})$")


def in_bounds(row: int, col: int, size: int = _cfg.BOARD_SIZE) -> bool:
    return 0 <= row < size and 0 <= col < size


def coord_to_rowcol(coord: str) -> Tuple[int, int]:
    """Parse 'C7' or '2,6' into a zero-based (row, col); ValueError otherwise."""
    text = coord.strip().upper()
    m = COORD_RE.match(text)
    if m:
        row, col = ord(m.group(1)) - ord("A"), int(m.group(2)) - 1
    else:
        m = PAIR_RE.match(text)
        if not m:
            raise ValueError(f"Invalid coordinate: {coord.strip()}")
        row, col = int(m.group(1)), int(m.group(2))
    if not in_bounds(row, col):
        raise ValueError(f"Coordinate off the board: {coord.strip()}")
    return row, col


def format_coord(row: int, col: int) -> str:
    return f"{chr(ord('A') + row)}{col + 1}"
