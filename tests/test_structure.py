"""Tests for row/column insert, delete and sort with override re-keying."""

from __future__ import annotations

from conftest import letters_data

from sheetgrid.contracts.grid import CellOverride, CellPosition, CellStyle, ColumnType
from sheetgrid.contracts.operations import (
    AddColumn,
    AddRow,
    DeleteColumn,
    DeleteRow,
    SetFormula,
    SetStyle,
    SetValue,
    SortColumn,
    UpdateColumnType,
)
from sheetgrid.engine import structure
from sheetgrid.engine.addressing import CellKey
from sheetgrid.engine.store import GridStore


def pos(row: int, col: int) -> CellPosition:
    return CellPosition(row=row, col=col)


class TestRemap:
    def test_decisions_do_not_clobber(self):
        overrides = {CellKey(0, 0): CellOverride(value="x"), CellKey(0, 1): CellOverride(value="y")}
        out = structure.remap_overrides(overrides, structure.column_insert_mapper(0))
        assert out == {CellKey(0, 1): CellOverride(value="x"), CellKey(0, 2): CellOverride(value="y")}

    def test_delete_mappers(self):
        col = structure.column_delete_mapper(1)
        assert col(CellKey(3, 0)) == CellKey(3, 0)
        assert col(CellKey(3, 1)) is None
        assert col(CellKey(3, 2)) == CellKey(3, 1)
        row = structure.row_delete_mapper(1)
        assert row(CellKey(0, 4)) == CellKey(0, 4)
        assert row(CellKey(1, 4)) is None
        assert row(CellKey(2, 4)) == CellKey(1, 4)


class TestDeleteColumn:
    def test_shifts_overrides_left(self, store: GridStore):
        store.dispatch(SetValue(position=pos(0, 1), value="50"))
        store.dispatch(SetValue(position=pos(0, 3), value="x@y.com"))
        store.dispatch(DeleteColumn(index=1))
        assert store.col_count == 5
        assert list(store.overrides) == [CellKey(0, 2)]
        assert store.get_display_value(0, 2) == "x@y.com"
        assert all("age" not in item for item in store.items)

    def test_out_of_range(self, store: GridStore):
        store.dispatch(DeleteColumn(index=6))
        store.dispatch(DeleteColumn(index=-1))
        assert store.col_count == 6
        assert len(store.history) == 1

    def test_delete_last_column(self, store: GridStore):
        store.dispatch(SetStyle(position=pos(2, 5), style=CellStyle(bold=True)))
        store.dispatch(DeleteColumn(index=5))
        assert all(k.col < 5 for k in store.overrides)


class TestDeleteRow:
    def test_shifts_overrides_up(self, store: GridStore):
        store.dispatch(SetValue(position=pos(0, 0), value="Zed"))
        store.dispatch(SetValue(position=pos(2, 0), value="Caroline"))
        store.dispatch(DeleteRow(index=1))
        assert store.row_count == 2
        assert store.get_display_value(0, 0) == "Zed"
        assert store.get_display_value(1, 0) == "Caroline"
        assert CellKey(2, 0) not in store.overrides

    def test_drops_overrides_in_deleted_row(self, store: GridStore):
        store.dispatch(SetFormula(position=pos(1, 1), formula="=1"))
        store.dispatch(DeleteRow(index=1))
        assert store.overrides == {}

    def test_out_of_range(self, store: GridStore):
        store.dispatch(DeleteRow(index=3))
        assert store.row_count == 3
        assert len(store.history) == 1


class TestInsert:
    def test_insert_column_shifts_overrides_right(self, store: GridStore):
        store.dispatch(SetValue(position=pos(0, 0), value="Zed"))
        store.dispatch(AddColumn(index=0, name="First"))
        assert store.get_display_value(0, 0) == ""
        assert store.get_display_value(0, 1) == "Zed"

    def test_insert_row_shifts_overrides_down(self, store: GridStore):
        store.dispatch(SetValue(position=pos(1, 0), value="Robert"))
        store.dispatch(AddRow(index=1))
        assert store.get_display_value(1, 0) == ""
        assert store.get_display_value(2, 0) == "Robert"

    def test_append_does_not_move_overrides(self, store: GridStore):
        store.dispatch(SetValue(position=pos(2, 5), value="2024-02-01"))
        store.dispatch(AddRow())
        store.dispatch(AddColumn())
        assert store.get_display_value(2, 5) == "02/01/2024"

    def test_row_ids_stay_unique(self, store: GridStore):
        store.dispatch(AddRow())
        store.dispatch(DeleteRow(index=0))
        store.dispatch(AddRow())
        assert len(set(store.state.row_ids)) == store.row_count


class TestSort:
    def test_numeric_ascending(self, store: GridStore):
        store.dispatch(SortColumn(index=1, direction="asc"))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Bob", "Alice", "Carol"]

    def test_overrides_follow_rows(self, store: GridStore):
        store.dispatch(SetValue(position=pos(0, 3), value="alice@new.org"))
        store.dispatch(SetStyle(position=pos(0, 0), style=CellStyle(bold=True)))
        store.dispatch(SortColumn(index=1, direction="desc"))  # Carol, Alice, Bob
        assert store.get_display_value(1, 0) == "Alice"
        assert store.get_display_value(1, 3) == "alice@new.org"
        assert store.get_style(1, 0).bold is True
        assert store.get_style(0, 0).bold is None

    def test_empty_cells_last_in_both_directions(self, store: GridStore):
        store.dispatch(SortColumn(index=2, direction="asc"))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Alice", "Bob", "Carol"]
        store.dispatch(SortColumn(index=2, direction="desc"))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Bob", "Alice", "Carol"]

    def test_sort_uses_override_values(self, store: GridStore):
        store.dispatch(SetValue(position=pos(2, 1), value="1"))
        store.dispatch(SortColumn(index=1))
        assert store.get_display_value(0, 0) == "Carol"

    def test_unchanged_order_is_not_recorded(self, store: GridStore):
        store.dispatch(SortColumn(index=0, direction="asc"))
        assert len(store.history) == 1

    def test_dates_sort_chronologically(self, store: GridStore):
        store.dispatch(SortColumn(index=5, direction="asc"))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Bob", "Alice", "Carol"]

    def test_text_is_case_insensitive_and_stable(self):
        data = letters_data(rows=4, cols=1)
        data["items"] = [{"a": "beta"}, {"a": "Alpha"}, {"a": "alpha"}, {"a": ""}]
        s = GridStore(data)
        s.dispatch(SortColumn(index=0))
        assert [s.get_display_value(r, 0) for r in range(4)] == ["Alpha", "alpha", "beta", ""]

    def test_unparseable_values_sort_after_numbers(self, store: GridStore):
        store.dispatch(SetValue(position=pos(0, 1), value="n/a"))
        store.dispatch(SortColumn(index=1))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Bob", "Carol", "Alice"]

    def test_sort_after_retype(self, store: GridStore):
        store.dispatch(UpdateColumnType(index=0, column_type=ColumnType.TEXT))
        store.dispatch(SortColumn(index=0, direction="desc"))
        assert [store.get_display_value(r, 0) for r in range(3)] == ["Carol", "Bob", "Alice"]

    def test_out_of_range(self, store: GridStore):
        store.dispatch(SortColumn(index=9))
        assert len(store.history) == 1
