"""Cell addressing: override-map keys and A1-style references."""

from __future__ import annotations

import re
from typing import NamedTuple

from openpyxl.utils import column_index_from_string, get_column_letter

from sheetgrid.contracts.grid import CellPosition, CellRange


class CellKey(NamedTuple):
    """Key of the sparse override map."""

    row: int
    col: int


def encode(row: int, col: int) -> CellKey:
    return CellKey(row, col)


def decode(key: CellKey) -> tuple[int, int]:
    return key.row, key.col


def key_of(pos: CellPosition) -> CellKey:
    return CellKey(pos.row, pos.col)


def key_to_str(key: CellKey) -> str:
    """Text form used in session files, e.g. ``"5-3"``."""
    return f"{key.row}-{key.col}"


def key_from_str(text: str) -> CellKey:
    row, col = text.split("-", 1)
    return CellKey(int(row), int(col))


def column_letter(index: int) -> str:
    """Zero-based column index to spreadsheet letters (0 -> A, 26 -> AA)."""
    return get_column_letter(index + 1)


def to_a1(row: int, col: int) -> str:
    return f"{column_letter(col)}{row + 1}"


_A1_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")


def from_a1(ref: str) -> CellPosition:
    """Parse ``B3`` into a zero-based position. Raises ValueError."""
    m = _A1_RE.match(ref.strip())
    if not m or int(m.group(2)) < 1:
        raise ValueError(f"Invalid cell ref: {ref}")
    col = column_index_from_string(m.group(1).upper()) - 1
    return CellPosition(row=int(m.group(2)) - 1, col=col)


def parse_range_ref(ref: str) -> CellRange:
    """Parse ``A1:C4`` (or a single ``B2``) into a range. Raises ValueError."""
    parts = ref.split(":")
    if len(parts) > 2:
        raise ValueError(f"Invalid range ref: {ref}")
    start = from_a1(parts[0])
    end = from_a1(parts[1]) if len(parts) == 2 else start
    return CellRange(start=start, end=end)


def range_to_a1(rng: CellRange) -> str:
    n = rng.normalized()
    return f"{to_a1(n.start.row, n.start.col)}:{to_a1(n.end.row, n.end.col)}"
