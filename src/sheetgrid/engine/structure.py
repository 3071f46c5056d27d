"""Row/column insert, delete and sort with re-keying of cell overrides.

Every re-key goes through ``remap_overrides``: the full set of
old-key -> new-key decisions is collected first and a fresh map is written
afterwards, so no entry can be overwritten before it has been relocated.
"""

from __future__ import annotations

from typing import Callable, Literal

from sheetgrid.contracts.grid import CellOverride, Column, ColumnFormat, ColumnType, Scalar
from sheetgrid.engine.addressing import CellKey
from sheetgrid.engine.state import GridState
from sheetgrid.validation.formatting import (
    DEFAULT_LOCALE,
    parse_date,
    parse_locale_number,
    parse_number,
    scalar_text,
    strip_currency,
    validate,
)

KeyMapper = Callable[[CellKey], "CellKey | None"]


def remap_overrides(
    overrides: dict[CellKey, CellOverride],
    mapper: KeyMapper,
) -> dict[CellKey, CellOverride]:
    """Apply *mapper* to every key; ``None`` drops the entry."""
    decisions = [(old, mapper(old)) for old in overrides]
    remapped: dict[CellKey, CellOverride] = {}
    for old, new in decisions:
        if new is not None:
            remapped[new] = overrides[old]
    return remapped


def column_delete_mapper(index: int) -> KeyMapper:
    def mapper(key: CellKey) -> CellKey | None:
        if key.col == index:
            return None
        if key.col > index:
            return CellKey(key.row, key.col - 1)
        return key
    return mapper


def row_delete_mapper(index: int) -> KeyMapper:
    def mapper(key: CellKey) -> CellKey | None:
        if key.row == index:
            return None
        if key.row > index:
            return CellKey(key.row - 1, key.col)
        return key
    return mapper


def column_insert_mapper(index: int) -> KeyMapper:
    return lambda key: CellKey(key.row, key.col + 1) if key.col >= index else key


def row_insert_mapper(index: int) -> KeyMapper:
    return lambda key: CellKey(key.row + 1, key.col) if key.row >= index else key


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------
def insert_column(state: GridState, index: int, column: Column) -> bool:
    """Insert *column* at *index* (``0..len``) and backfill every item with ``""``."""
    if not 0 <= index <= state.col_count:
        return False
    state.dataset.columns.insert(index, column)
    for item in state.dataset.items:
        item[column.key] = ""
    state.overrides = remap_overrides(state.overrides, column_insert_mapper(index))
    return True


def delete_column(state: GridState, index: int) -> bool:
    if not 0 <= index < state.col_count:
        return False
    removed = state.dataset.columns.pop(index)
    for item in state.dataset.items:
        item.pop(removed.key, None)
    state.overrides = remap_overrides(state.overrides, column_delete_mapper(index))
    return True


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------
def insert_row(state: GridState, index: int, row_id: int) -> bool:
    """Insert an all-empty item at *index* (``0..len``)."""
    if not 0 <= index <= state.row_count:
        return False
    item: dict[str, Scalar] = {key: "" for key in state.dataset.column_keys()}
    state.dataset.items.insert(index, item)
    state.row_ids.insert(index, row_id)
    state.overrides = remap_overrides(state.overrides, row_insert_mapper(index))
    return True


def delete_row(state: GridState, index: int) -> bool:
    if not 0 <= index < state.row_count:
        return False
    del state.dataset.items[index]
    del state.row_ids[index]
    state.overrides = remap_overrides(state.overrides, row_delete_mapper(index))
    return True


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------
_NUMERIC_TYPES = (ColumnType.NUMBER, ColumnType.CURRENCY, ColumnType.PERCENTAGE)


def sort_key(value: Scalar, column: Column, locale: str = DEFAULT_LOCALE) -> tuple:
    """Comparable key for a non-empty cell value of *column*.

    Values that do not parse for the column type sort after those that do,
    compared as case-folded text.
    """
    column_type = column.type
    fmt = column.format or ColumnFormat()
    text = scalar_text(value).strip()
    fallback = (1, text.casefold())
    if column_type in _NUMERIC_TYPES:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (0, float(value))
        if column_type is ColumnType.PERCENTAGE:
            num = parse_number(text.replace("%", "").replace(",", ""))
        else:
            num = parse_locale_number(strip_currency(text, fmt.currency_code, locale), locale)
        return (0, num) if num is not None else fallback
    if column_type is ColumnType.DATE:
        parsed = parse_date(text, dayfirst=fmt.date_pattern == "DD/MM/YYYY")
        return (0, parsed.replace(tzinfo=None)) if parsed is not None else fallback
    if column_type is ColumnType.BOOLEAN:
        outcome = validate(text, ColumnType.BOOLEAN)
        return (0, outcome.formatted_value == "Yes") if outcome.valid else fallback
    return (0, text.casefold())


def sort_rows(
    state: GridState,
    col: int,
    direction: Literal["asc", "desc"],
    value_at: Callable[[int, int], Scalar],
    locale: str = DEFAULT_LOCALE,
) -> bool:
    """Stable-sort rows by column *col*; empty cells always go last.

    *value_at(row, col)* supplies the effective (override-aware) raw value.
    Returns False when the column is out of range or the order is unchanged.
    """
    if not 0 <= col < state.col_count:
        return False
    column = state.dataset.columns[col]

    filled: list[tuple[tuple, int]] = []
    empty: list[int] = []
    for row in range(state.row_count):
        value = value_at(row, col)
        if scalar_text(value).strip() == "":
            empty.append(row)
        else:
            filled.append((sort_key(value, column, locale), row))

    filled.sort(key=lambda pair: pair[0], reverse=(direction == "desc"))
    order = [row for _, row in filled] + empty
    if order == list(range(state.row_count)):
        return False

    new_row_of = {old: new for new, old in enumerate(order)}
    state.dataset.items = [state.dataset.items[old] for old in order]
    state.row_ids = [state.row_ids[old] for old in order]
    state.overrides = remap_overrides(
        state.overrides,
        lambda key: CellKey(new_row_of[key.row], key.col) if key.row in new_row_of else None,
    )
    return True
