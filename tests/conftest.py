"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

from sheetgrid.engine.session import SessionContext, dataset_from_data
from sheetgrid.engine.store import GridStore


def people_data() -> dict[str, Any]:
    """Six typed columns (A..F) over three rows."""
    return {
        "columns": [
            {"key": "name", "displayName": "Name", "type": "text"},
            {"key": "age", "displayName": "Age", "type": "number"},
            {"key": "salary", "displayName": "Salary", "type": "currency"},
            {"key": "email", "displayName": "Email", "type": "email"},
            {"key": "active", "displayName": "Active", "type": "boolean"},
            {"key": "joined", "displayName": "Joined", "type": "date"},
        ],
        "items": [
            {"name": "Alice", "age": 30, "salary": 100, "email": "alice@example.com",
             "active": "Yes", "joined": "01/15/2024"},
            {"name": "Bob", "age": 25, "salary": 2500.5, "email": "bob@example.com",
             "active": "No", "joined": "03/02/2023"},
            {"name": "Carol", "age": 41, "salary": "", "email": "carol@example.com",
             "active": "Yes", "joined": ""},
        ],
    }


def letters_data(rows: int = 4, cols: int = 4) -> dict[str, Any]:
    """All-text grid whose cells read ``<column key><row>``, e.g. ``b2``."""
    keys = [chr(ord("a") + c) for c in range(cols)]
    return {
        "columns": [{"key": k, "displayName": k.upper(), "type": "text"} for k in keys],
        "items": [{k: f"{k}{r}" for k in keys} for r in range(rows)],
    }


def display_grid(store: GridStore) -> list[list[str]]:
    return [
        [store.get_display_value(r, c) for c in range(store.col_count)]
        for r in range(store.row_count)
    ]


@pytest.fixture()
def store() -> GridStore:
    return GridStore(dataset_from_data(people_data()))


@pytest.fixture()
def letters_store() -> GridStore:
    return GridStore(dataset_from_data(letters_data()))


@pytest.fixture()
def dataset_json(tmp_path: Path) -> Path:
    path = tmp_path / "people.json"
    path.write_text(json.dumps(people_data()))
    return path


@pytest.fixture()
def session_file(tmp_path: Path) -> Path:
    """A fresh session over the people dataset."""
    path = tmp_path / "grid.json"
    SessionContext.create(path, dataset_from_data(people_data()))
    return path


@pytest.fixture()
def people_workbook(tmp_path: Path) -> Path:
    """Header row plus three rows, types left for inference."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Staff"
    ws.append(["Name", "Age", "Email"])
    ws.append(["Alice", 30, "alice@example.com"])
    ws.append(["Bob", 25, "bob@example.com"])
    ws.append(["Carol", 41, "carol@example.com"])
    path = tmp_path / "people.xlsx"
    wb.save(str(path))
    wb.close()
    return path
