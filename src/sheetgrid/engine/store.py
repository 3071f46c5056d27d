"""GridStore: the single owned state container and its ``dispatch`` entry point."""

from __future__ import annotations

import uuid
from typing import Any, assert_never

from pydantic import ValidationError

from sheetgrid.config import GridConfig
from sheetgrid.contracts.common import WarningDetail
from sheetgrid.contracts.grid import (
    CellOverride,
    CellPosition,
    CellRange,
    CellStyle,
    Column,
    ColumnFormat,
    ColumnType,
    Dataset,
    Scalar,
)
from sheetgrid.contracts.operations import (
    COMMITTING_TYPES,
    AddColumn,
    AddRow,
    DeleteColumn,
    DeleteRow,
    MoveRange,
    Operation,
    Redo,
    Reset,
    SelectCell,
    SelectRange,
    SetFormula,
    SetStyle,
    SetValue,
    SortColumn,
    StartEditing,
    StopEditing,
    Undo,
    UpdateColumnName,
    UpdateColumnType,
    parse_operation,
)
from sheetgrid.engine import structure
from sheetgrid.engine.addressing import CellKey, key_of, to_a1
from sheetgrid.engine.history import History, carry_styles
from sheetgrid.engine.ranges import MovePlan, plan_move
from sheetgrid.engine.state import GridState
from sheetgrid.observe.events import EventEmitter
from sheetgrid.validation.formatting import display_number, is_empty, scalar_text, validate

_OPERATION_CLASSES = (
    SetValue, SetStyle, SetFormula, AddColumn, AddRow, DeleteColumn, DeleteRow,
    SelectCell, SelectRange, StartEditing, StopEditing, UpdateColumnName,
    UpdateColumnType, SortColumn, MoveRange, Undo, Redo, Reset,
)


class GridStore:
    """Owns the dataset, cell overrides, selection, editing state and history.

    All mutation goes through :meth:`dispatch`, which is total: malformed
    operations and out-of-range indices are ignored rather than raised.
    Validation failures are appended to :attr:`warnings` and the write still
    happens.
    """

    def __init__(
        self,
        dataset: Dataset | dict[str, Any] | None = None,
        *,
        config: GridConfig | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        if isinstance(dataset, dict):
            dataset = Dataset.model_validate(dataset)
        self.config = config or GridConfig()
        self.emitter = emitter or EventEmitter(enabled=self.config.events)
        self.warnings: list[WarningDetail] = []
        self.commit_count = 0
        self._base = (dataset or Dataset()).model_copy(deep=True)
        self.state = GridState.initial(self._base)
        self._next_row_id = len(self._base.items)
        self.history = History(limit=self.config.history_limit)
        self.history.reset(self.state)

    @classmethod
    def from_parts(
        cls,
        base: Dataset,
        state: GridState,
        history: list[GridState],
        history_index: int,
        next_row_id: int,
        *,
        config: GridConfig | None = None,
        emitter: EventEmitter | None = None,
    ) -> "GridStore":
        """Rebuild a store from persisted pieces (see ``engine.session``)."""
        store = cls(base, config=config, emitter=emitter)
        store.state = state
        store._next_row_id = max(next_row_id, max(state.row_ids, default=-1) + 1)
        if history:
            store.history.restore(history, history_index)
        else:
            store.history.reset(state)
        return store

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------
    @property
    def base(self) -> Dataset:
        return self._base.model_copy(deep=True)

    @property
    def next_row_id(self) -> int:
        return self._next_row_id

    @property
    def dataset(self) -> Dataset:
        return self.state.dataset

    @property
    def columns(self) -> list[Column]:
        return self.state.dataset.columns

    @property
    def items(self) -> list[dict[str, Scalar]]:
        return self.state.dataset.items

    @property
    def overrides(self) -> dict[CellKey, CellOverride]:
        return self.state.overrides

    @property
    def selected_cell(self) -> CellPosition | None:
        return self.state.selected_cell

    @property
    def selected_range(self) -> CellRange | None:
        return self.state.selected_range

    @property
    def editing_cell(self) -> CellPosition | None:
        return self.state.editing_cell

    @property
    def row_count(self) -> int:
        return self.state.row_count

    @property
    def col_count(self) -> int:
        return self.state.col_count

    def get_raw_value(self, row: int, col: int) -> Scalar:
        """Override value if one is set, else the base value; ``""`` off-grid."""
        if not self.state.in_bounds(row, col):
            return ""
        ov = self.state.overrides.get(CellKey(row, col))
        if ov is not None and ov.value is not None:
            return ov.value
        column = self.state.dataset.columns[col]
        return self.state.dataset.items[row].get(column.key, "")

    def get_display_value(self, row: int, col: int) -> str:
        raw = self.get_raw_value(row, col)
        if not self.state.in_bounds(row, col):
            return ""
        column = self.state.dataset.columns[col]
        if (
            isinstance(raw, (int, float))
            and not isinstance(raw, bool)
            and column.type in (ColumnType.NUMBER, ColumnType.CURRENCY)
        ):
            return display_number(raw, self.config.locale)
        return scalar_text(raw)

    def get_style(self, row: int, col: int) -> CellStyle:
        ov = self.state.overrides.get(CellKey(row, col))
        if ov is None or ov.style is None or not self.state.in_bounds(row, col):
            return CellStyle()
        return ov.style.model_copy()

    def get_formula(self, row: int, col: int) -> str | None:
        ov = self.state.overrides.get(CellKey(row, col))
        if ov is None or not self.state.in_bounds(row, col):
            return None
        return ov.formula

    def get_cell(self, row: int, col: int) -> dict[str, Any]:
        """Everything the view needs to render one cell."""
        return {
            "ref": to_a1(row, col) if row >= 0 and col >= 0 else None,
            "row": row,
            "col": col,
            "raw": self.get_raw_value(row, col),
            "display": self.get_display_value(row, col),
            "style": self.get_style(row, col).model_dump(by_alias=True, exclude_none=True),
            "formula": self.get_formula(row, col),
        }

    def materialize(self) -> Dataset:
        """Current dataset with every override value applied."""
        ds = self.state.dataset.model_copy(deep=True)
        for key, ov in self.state.overrides.items():
            if ov.value is not None and self.state.in_bounds(key.row, key.col):
                ds.items[key.row][ds.columns[key.col].key] = ov.value
        return ds

    def drain_warnings(self) -> list[WarningDetail]:
        drained, self.warnings = self.warnings, []
        return drained

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, operation: Operation | dict[str, Any]) -> None:
        """Apply one operation; committing operations that changed state are recorded."""
        if isinstance(operation, _OPERATION_CLASSES):
            op = operation
        else:
            try:
                op = parse_operation(operation)
            except ValidationError as e:
                op_type = operation.get("type") if isinstance(operation, dict) else None
                self._warn(
                    "WARN_OPERATION_INVALID",
                    f"Ignored malformed operation ({e.error_count()} validation error(s))",
                    path=str(op_type) if op_type else None,
                )
                return

        changed = self._apply(op)
        if changed and op.type in COMMITTING_TYPES:
            self.history.commit(self.state)
            self.commit_count += 1
            self.emitter.emit("history.commit", {"type": op.type, "index": self.history.index})
        self.emitter.emit(
            "operation.dispatched" if changed else "operation.ignored",
            {"type": op.type},
        )

    def _apply(self, op: Operation) -> bool:
        if isinstance(op, SetValue):
            return self._set_value(op.position, op.value)
        elif isinstance(op, SetStyle):
            return self._set_style(op.position, op.style)
        elif isinstance(op, SetFormula):
            return self._set_formula(op.position, op.formula)
        elif isinstance(op, AddColumn):
            return self._add_column(op.index, op.name)
        elif isinstance(op, AddRow):
            return self._add_row(op.index)
        elif isinstance(op, DeleteColumn):
            return structure.delete_column(self.state, op.index)
        elif isinstance(op, DeleteRow):
            return structure.delete_row(self.state, op.index)
        elif isinstance(op, SelectCell):
            return self._select_cell(op.position)
        elif isinstance(op, SelectRange):
            return self._select_range(op.range)
        elif isinstance(op, StartEditing):
            if not self.state.contains(op.position):
                return False
            self.state.editing_cell = op.position
            return True
        elif isinstance(op, StopEditing):
            changed = self.state.editing_cell is not None
            self.state.editing_cell = None
            return changed
        elif isinstance(op, UpdateColumnName):
            return self._update_column_name(op.index, op.name)
        elif isinstance(op, UpdateColumnType):
            return self._update_column_type(op.index, op.column_type, op.format)
        elif isinstance(op, SortColumn):
            return structure.sort_rows(
                self.state, op.index, op.direction, self.get_raw_value, self.config.locale,
            )
        elif isinstance(op, MoveRange):
            return self._move_range(op)
        elif isinstance(op, Undo):
            return self._restore(self.history.undo(), "history.undo")
        elif isinstance(op, Redo):
            return self._restore(self.history.redo(), "history.redo")
        elif isinstance(op, Reset):
            return self._reset()
        else:
            assert_never(op)

    # ------------------------------------------------------------------
    # Cell writes
    # ------------------------------------------------------------------
    def _override(self, pos: CellPosition) -> CellOverride:
        return self.state.overrides.setdefault(key_of(pos), CellOverride())

    def _write_value(self, pos: CellPosition, value: Scalar) -> None:
        column = self.state.dataset.columns[pos.col]
        final: Scalar = value
        if not is_empty(value):
            outcome = validate(value, column.type, column.format, locale=self.config.locale)
            if not outcome.valid:
                self._warn(
                    "WARN_VALIDATION",
                    f"Invalid value for {column.type.value} column "
                    f"'{column.display_name or column.key}': {outcome.error}",
                    path=to_a1(pos.row, pos.col),
                )
            final = outcome.formatted_value or value
        self._override(pos).value = final

    def _merge_style(self, pos: CellPosition, style: CellStyle) -> None:
        ov = self._override(pos)
        ov.style = (ov.style or CellStyle()).merged(style)

    def _set_value(self, pos: CellPosition, value: Scalar) -> bool:
        if not self.state.contains(pos):
            return False
        self._write_value(pos, value)
        return True

    def _set_style(self, pos: CellPosition, style: CellStyle) -> bool:
        if not self.state.contains(pos):
            return False
        self._merge_style(pos, style)
        return True

    def _set_formula(self, pos: CellPosition, formula: str) -> bool:
        if not self.state.contains(pos):
            return False
        self._override(pos).formula = formula
        return True

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------
    def _fresh_column_key(self) -> str:
        existing = set(self.state.dataset.column_keys())
        while True:
            key = f"column_{uuid.uuid4().hex[:12]}"
            if key not in existing:
                return key

    def _add_column(self, index: int | None, name: str | None) -> bool:
        count = self.state.col_count
        column = Column(
            key=self._fresh_column_key(),
            display_name=name or f"Column {count + 1}",
            type=ColumnType.TEXT,
        )
        return structure.insert_column(self.state, count if index is None else index, column)

    def _add_row(self, index: int | None) -> bool:
        target = self.state.row_count if index is None else index
        if not structure.insert_row(self.state, target, self._next_row_id):
            return False
        self._next_row_id += 1
        return True

    def _update_column_name(self, index: int, name: str) -> bool:
        if not 0 <= index < self.state.col_count:
            return False
        self.state.dataset.columns[index].display_name = name
        return True

    def _update_column_type(self, index: int, column_type: ColumnType, fmt: ColumnFormat | None) -> bool:
        if not 0 <= index < self.state.col_count:
            return False
        column = self.state.dataset.columns[index]
        column.type = column_type
        column.format = fmt.model_copy() if fmt is not None else ColumnFormat()
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def _select_cell(self, pos: CellPosition) -> bool:
        if not self.state.contains(pos):
            return False
        self.state.selected_cell = pos
        self.state.selected_range = None
        return True

    def _select_range(self, rng: CellRange) -> bool:
        if not (self.state.contains(rng.start) and self.state.contains(rng.end)):
            return False
        self.state.selected_range = rng
        self.state.selected_cell = None
        return True

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------
    def plan_move(self, op: MoveRange) -> MovePlan:
        return plan_move(self, op.anchor, op.source, op.destination)

    def _move_range(self, op: MoveRange) -> bool:
        # An in-progress edit owns the pointer; no drag starts from it.
        if self.state.editing_cell is not None:
            return False
        plan = self.plan_move(op)
        for pos in plan.cleared:
            self._override(pos).value = ""
        for move in plan.moves:
            self._write_value(move.target, move.value)
            self._merge_style(move.target, move.style)
        if plan.dropped:
            self._warn(
                "WARN_MOVE_DROPPED",
                f"{len(plan.dropped)} cell(s) moved off the grid and were discarded",
                path=",".join(to_a1(p.row, p.col) for p in plan.dropped),
            )
        self.state.selected_range = plan.selection
        self.state.selected_cell = None
        return not plan.is_empty

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def _restore(self, snapshot: GridState | None, event: str) -> bool:
        if snapshot is None:
            return False
        carry_styles(self.state, snapshot)
        self.state = snapshot
        self.emitter.emit(event, {"index": self.history.index})
        return True

    def _reset(self) -> bool:
        self.state = GridState.initial(self._base)
        self._next_row_id = len(self._base.items)
        self.history.reset(self.state)
        self.emitter.emit("history.reset", {})
        return True

    def _warn(self, code: str, message: str, *, path: str | None = None) -> None:
        self.warnings.append(WarningDetail(code=code, message=message, path=path))
        self.emitter.emit("validation.warning" if code == "WARN_VALIDATION" else "engine.warning", {
            "code": code,
            "message": message,
            "path": path,
        })
