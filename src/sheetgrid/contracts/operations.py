"""Operation vocabulary accepted by ``GridStore.dispatch``.

Each operation is its own model with a literal ``type`` tag; ``Operation`` is
the discriminated union over all of them, so raw dicts coming from the CLI,
the stdio server or a script parse straight into the right class.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from sheetgrid.contracts.grid import (
    CellPosition,
    CellRange,
    CellStyle,
    ColumnFormat,
    ColumnType,
    Scalar,
)


class SetValue(BaseModel):
    type: Literal["set_value"] = "set_value"
    position: CellPosition
    value: Scalar


class SetStyle(BaseModel):
    type: Literal["set_style"] = "set_style"
    position: CellPosition
    style: CellStyle


class SetFormula(BaseModel):
    type: Literal["set_formula"] = "set_formula"
    position: CellPosition
    formula: str


class AddColumn(BaseModel):
    type: Literal["add_column"] = "add_column"
    index: int | None = None
    name: str | None = None


class AddRow(BaseModel):
    type: Literal["add_row"] = "add_row"
    index: int | None = None


class DeleteColumn(BaseModel):
    type: Literal["delete_column"] = "delete_column"
    index: int


class DeleteRow(BaseModel):
    type: Literal["delete_row"] = "delete_row"
    index: int


class SelectCell(BaseModel):
    type: Literal["select_cell"] = "select_cell"
    position: CellPosition


class SelectRange(BaseModel):
    type: Literal["select_range"] = "select_range"
    range: CellRange


class StartEditing(BaseModel):
    type: Literal["start_editing"] = "start_editing"
    position: CellPosition


class StopEditing(BaseModel):
    type: Literal["stop_editing"] = "stop_editing"


class UpdateColumnName(BaseModel):
    type: Literal["update_column_name"] = "update_column_name"
    index: int
    name: str


class UpdateColumnType(BaseModel):
    type: Literal["update_column_type"] = "update_column_type"
    index: int
    column_type: ColumnType
    format: ColumnFormat | None = None


class SortColumn(BaseModel):
    type: Literal["sort_column"] = "sort_column"
    index: int
    direction: Literal["asc", "desc"] = "asc"


class MoveRange(BaseModel):
    """Relocate the non-empty cells of *source* by ``destination - anchor``."""

    type: Literal["move_range"] = "move_range"
    anchor: CellPosition
    source: CellRange
    destination: CellPosition


class Undo(BaseModel):
    type: Literal["undo"] = "undo"


class Redo(BaseModel):
    type: Literal["redo"] = "redo"


class Reset(BaseModel):
    """Discard every edit and return to the dataset as loaded."""

    type: Literal["reset"] = "reset"


Operation = Annotated[
    Union[
        SetValue,
        SetStyle,
        SetFormula,
        AddColumn,
        AddRow,
        DeleteColumn,
        DeleteRow,
        SelectCell,
        SelectRange,
        StartEditing,
        StopEditing,
        UpdateColumnName,
        UpdateColumnType,
        SortColumn,
        MoveRange,
        Undo,
        Redo,
        Reset,
    ],
    Field(discriminator="type"),
]

OPERATION_ADAPTER: TypeAdapter[Operation] = TypeAdapter(Operation)

OPERATION_TYPES: frozenset[str] = frozenset({
    "set_value", "set_style", "set_formula",
    "add_column", "add_row", "delete_column", "delete_row",
    "select_cell", "select_range", "start_editing", "stop_editing",
    "update_column_name", "update_column_type", "sort_column",
    "move_range", "undo", "redo", "reset",
})

# Operations recorded as a history entry when they change state.
COMMITTING_TYPES: frozenset[str] = frozenset({
    "set_value", "set_formula",
    "add_column", "add_row", "delete_column", "delete_row",
    "update_column_name", "update_column_type", "sort_column",
    "move_range",
})


def parse_operation(data: dict) -> Operation:
    """Parse a raw mapping into its operation model. Raises ``ValidationError``."""
    return OPERATION_ADAPTER.validate_python(data)
