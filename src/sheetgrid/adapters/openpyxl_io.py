"""openpyxl-based import of a worksheet as a dataset and export of the live grid."""

from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from sheetgrid.contracts.common import ChangeRecord, SessionCorruptError
from sheetgrid.contracts.grid import Dataset, Scalar
from sheetgrid.engine.store import GridStore
from sheetgrid.io.fileops import atomic_write

_HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def _cell_scalar(value: Any) -> Scalar:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float, str)):
        return value
    # datetimes and anything else come through as text
    if hasattr(value, "strftime"):
        return value.strftime("%m/%d/%Y")
    return str(value)


def _column_key(header: str, index: int, taken: set[str]) -> str:
    base = re.sub(r"[^0-9a-zA-Z]+", "_", header).strip("_").lower() or f"column_{index + 1}"
    key, n = base, 2
    while key in taken:
        key, n = f"{base}_{n}", n + 1
    taken.add(key)
    return key


def read_dataset(path: str | Path, *, sheet: str | None = None) -> Dataset:
    """Read the first row of *sheet* as headers and every later row as an item."""
    from sheetgrid.engine.session import dataset_from_data

    try:
        wb = openpyxl.load_workbook(str(path), data_only=True, read_only=True)
    except Exception as e:
        raise SessionCorruptError(f"Cannot open workbook {path}: {e}") from e
    try:
        if sheet is not None and sheet not in wb.sheetnames:
            raise ValueError(f"Sheet not found: {sheet}")
        ws = wb[sheet] if sheet else wb.worksheets[0]
        rows = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if not rows or all(v is None for v in rows[0]):
        return Dataset()
    taken: set[str] = set()
    columns = []
    for i, header in enumerate(rows[0]):
        name = "" if header is None else str(header)
        columns.append({"key": _column_key(name, i, taken), "displayName": name or f"Column {i + 1}"})
    items = []
    for row in rows[1:]:
        if all(v is None for v in row):
            continue
        items.append({
            col["key"]: _cell_scalar(row[i] if i < len(row) else None)
            for i, col in enumerate(columns)
        })
    return dataset_from_data({"columns": columns, "items": items})


def _apply_style(cell: Any, style: dict[str, Any]) -> None:
    if style.get("bold") or style.get("italic"):
        cell.font = Font(bold=bool(style.get("bold")), italic=bool(style.get("italic")))
    if style.get("textAlign"):
        cell.alignment = Alignment(horizontal=style["textAlign"])
    color = style.get("backgroundColor")
    if color and (m := _HEX_RE.match(color)):
        cell.fill = PatternFill(fill_type="solid", start_color=m.group(1).upper())


def build_workbook(store: GridStore, *, sheet: str = "Sheet1", formulas: bool = False) -> Workbook:
    """Render the grid: a header row of display names, then display values and styles."""
    wb = Workbook()
    ws: Worksheet = wb.active
    ws.title = sheet
    for c, column in enumerate(store.columns, start=1):
        ws.cell(row=1, column=c, value=column.display_name or column.key).font = Font(bold=True)
    for r in range(store.row_count):
        for c in range(store.col_count):
            info = store.get_cell(r, c)
            value: Any = info["display"]
            if formulas and info["formula"]:
                value = info["formula"]
            cell = ws.cell(row=r + 2, column=c + 1, value=value if value != "" else None)
            _apply_style(cell, info["style"])
    return wb


def export_xlsx(
    store: GridStore,
    path: str | Path,
    *,
    sheet: str = "Sheet1",
    formulas: bool = False,
) -> ChangeRecord:
    wb = build_workbook(store, sheet=sheet, formulas=formulas)
    buf = BytesIO()
    wb.save(buf)
    wb.close()
    atomic_write(path, buf.getvalue())
    return ChangeRecord(
        type="export.xlsx",
        target=str(path),
        after={"sheet": sheet, "formulas": formulas},
        impact={"rows": store.row_count, "cells": store.row_count * store.col_count},
    )
