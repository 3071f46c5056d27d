"""Tests for range moves and selection statistics."""

from __future__ import annotations

from conftest import display_grid, people_data

from sheetgrid.config import GridConfig
from sheetgrid.contracts.grid import CellPosition, CellRange, CellStyle, ColumnFormat, ColumnType
from sheetgrid.contracts.operations import MoveRange, SetStyle, SetValue, StartEditing, Undo, UpdateColumnType
from sheetgrid.engine.addressing import parse_range_ref
from sheetgrid.engine.ranges import plan_move, selection_stats, selection_values
from sheetgrid.engine.session import dataset_from_data
from sheetgrid.engine.store import GridStore
from sheetgrid.validation.formatting import format_money


def pos(row: int, col: int) -> CellPosition:
    return CellPosition(row=row, col=col)


def move(source: str, anchor: str, destination: str) -> MoveRange:
    from sheetgrid.engine.addressing import from_a1

    return MoveRange(anchor=from_a1(anchor), source=parse_range_ref(source), destination=from_a1(destination))


class TestMove:
    def test_disjoint_move(self, letters_store: GridStore):
        letters_store.dispatch(move("A1:B2", "A1", "C3"))
        assert display_grid(letters_store) == [
            ["", "", "c0", "d0"],
            ["", "", "c1", "d1"],
            ["a2", "b2", "a0", "b0"],
            ["a3", "b3", "a1", "b1"],
        ]
        assert letters_store.selected_range == CellRange(start=pos(2, 2), end=pos(3, 3))
        assert letters_store.selected_cell is None

    def test_single_history_entry(self, letters_store: GridStore):
        before = display_grid(letters_store)
        letters_store.dispatch(move("A1:B2", "A1", "C3"))
        assert len(letters_store.history) == 2
        letters_store.dispatch(Undo())
        assert display_grid(letters_store) == before

    def test_overlapping_move_down(self, letters_store: GridStore):
        letters_store.dispatch(move("A1:B2", "A1", "A2"))
        grid = display_grid(letters_store)
        assert [row[0] for row in grid] == ["", "a0", "a1", "a3"]
        assert [row[1] for row in grid] == ["", "b0", "b1", "b3"]

    def test_overlapping_move_up_left(self, letters_store: GridStore):
        letters_store.dispatch(move("B2:C3", "B2", "A1"))
        grid = display_grid(letters_store)
        assert grid[0][:3] == ["b1", "c1", "c0"]
        assert grid[1][:3] == ["b2", "c2", ""]
        assert grid[2][:3] == ["a2", "", ""]

    def test_anchor_offset(self, letters_store: GridStore):
        # grabbing B1 and dropping it on D2 moves the range by (+1, +2)
        letters_store.dispatch(move("A1:B1", "B1", "D2"))
        grid = display_grid(letters_store)
        assert grid[0][:2] == ["", ""]
        assert grid[1][2:] == ["a0", "b0"]

    def test_reversed_source_corners(self, letters_store: GridStore):
        letters_store.dispatch(move("B2:A1", "A1", "C3"))
        assert letters_store.get_display_value(2, 2) == "a0"
        assert letters_store.selected_range == CellRange(start=pos(2, 2), end=pos(3, 3))

    def test_off_grid_targets_are_dropped(self, letters_store: GridStore):
        letters_store.dispatch(move("C3:D4", "C3", "D4"))
        grid = display_grid(letters_store)
        assert grid[2][2:] == ["", ""]
        assert grid[3][2:] == ["", "c2"]
        dropped = [w for w in letters_store.warnings if w.code == "WARN_MOVE_DROPPED"]
        assert len(dropped) == 1
        assert dropped[0].path == "D3,C4,D4"

    def test_selection_not_clamped(self, letters_store: GridStore):
        letters_store.dispatch(move("C3:D4", "C3", "D4"))
        assert letters_store.selected_range == CellRange(start=pos(3, 3), end=pos(4, 4))

    def test_empty_cells_are_not_moved(self, letters_store: GridStore):
        letters_store.dispatch(SetValue(position=pos(0, 1), value=""))
        letters_store.dispatch(move("A1:B1", "A1", "C2"))
        assert letters_store.get_display_value(1, 2) == "a0"
        # the empty B1 did not overwrite D2
        assert letters_store.get_display_value(1, 3) == "d1"

    def test_empty_source_is_not_recorded(self, letters_store: GridStore):
        letters_store.dispatch(SetValue(position=pos(0, 0), value=""))
        letters_store.dispatch(move("A1:A1", "A1", "B2"))
        assert len(letters_store.history) == 2
        assert letters_store.get_display_value(1, 1) == "b1"

    def test_styles_travel_and_merge(self, letters_store: GridStore):
        letters_store.dispatch(SetStyle(position=pos(0, 0), style=CellStyle(bold=True)))
        letters_store.dispatch(SetStyle(position=pos(1, 1), style=CellStyle(italic=True)))
        letters_store.dispatch(move("A1:A1", "A1", "B2"))
        style = letters_store.get_style(1, 1)
        assert style.bold is True
        assert style.italic is True
        assert letters_store.get_display_value(1, 1) == "a0"

    def test_ignored_while_editing(self, letters_store: GridStore):
        letters_store.dispatch(StartEditing(position=pos(0, 0)))
        before = display_grid(letters_store)
        letters_store.dispatch(move("A1:B2", "A1", "C3"))
        assert display_grid(letters_store) == before
        assert len(letters_store.history) == 1

    def test_values_revalidated_at_target(self, store: GridStore):
        # Age 30 dropped onto the Salary column becomes a currency amount
        store.dispatch(move("B1:B1", "B1", "C1"))
        assert store.get_display_value(0, 2) == "$30.00"
        assert store.get_display_value(0, 1) == ""

    def test_source_clipped_to_grid(self, letters_store: GridStore):
        letters_store.dispatch(move("C3:F6", "C3", "A1"))
        grid = display_grid(letters_store)
        assert grid[0][:2] == ["c2", "d2"]
        assert grid[1][:2] == ["c3", "d3"]


class TestPlan:
    def test_plan_lists_everything(self, letters_store: GridStore):
        plan = plan_move(letters_store, pos(2, 2), parse_range_ref("C3:D4"), pos(3, 3))
        assert (plan.d_row, plan.d_col) == (1, 1)
        assert len(plan.cleared) == 4
        assert [m.target for m in plan.moves] == [pos(3, 3)]
        assert plan.dropped == [pos(2, 3), pos(3, 2), pos(3, 3)]
        assert not plan.is_empty

    def test_plan_does_not_mutate(self, letters_store: GridStore):
        before = display_grid(letters_store)
        plan_move(letters_store, pos(0, 0), parse_range_ref("A1:D4"), pos(1, 1))
        assert display_grid(letters_store) == before


class TestSelectionStats:
    def test_stats_over_numbers(self, store: GridStore):
        stats = selection_stats(store, parse_range_ref("B1:B3"))
        assert stats.sum == 96
        assert stats.average == 32
        assert stats.numeric_count == 3

    def test_mixed_range(self, store: GridStore):
        stats = selection_stats(store, parse_range_ref("A1:C2"))
        # 30, 100, 25 and 2,500.5 count; names do not
        assert stats.numeric_count == 4
        assert stats.sum == 2655.5

    def test_values_clipped(self, store: GridStore):
        values = selection_values(store, parse_range_ref("F3:H9"))
        assert values == [""]


class TestMoveKeepsValues:
    def german_store(self) -> GridStore:
        return GridStore(dataset_from_data(people_data()), config=GridConfig({"locale": "de_DE"}))

    def test_number_under_other_locale(self):
        s = self.german_store()
        s.dispatch(SetValue(position=pos(0, 1), value="1234,5"))
        assert s.get_display_value(0, 1) == "1.234,50"
        s.dispatch(move("B1", "B1", "B3"))
        assert s.get_display_value(2, 1) == "1.234,50"
        s.dispatch(move("B3", "B3", "B2"))
        assert s.get_display_value(1, 1) == "1.234,50"

    def test_base_currency_under_other_locale(self):
        s = self.german_store()
        assert s.get_display_value(1, 2) == "2.500,5"
        s.dispatch(move("C2", "C2", "C3"))
        assert s.get_display_value(2, 2) == format_money(2500.5, "USD", "de_DE")

    def test_stats_under_other_locale(self):
        s = self.german_store()
        s.dispatch(SetValue(position=pos(0, 1), value="1234,5"))
        stats = selection_stats(s, parse_range_ref("B1:B2"))
        assert stats.sum == 1259.5
        assert stats.numeric_count == 2

    def test_other_currency_symbol(self, store: GridStore):
        fmt = ColumnFormat(currency_code="EUR")
        store.dispatch(UpdateColumnType(index=2, column_type=ColumnType.CURRENCY, format=fmt))
        store.dispatch(SetValue(position=pos(0, 2), value="1234.5"))
        assert store.get_display_value(0, 2) == "€1,234.50"
        store.dispatch(move("C1", "C1", "C3"))
        assert store.get_display_value(2, 2) == "€1,234.50"

    def test_day_first_dates(self, store: GridStore):
        fmt = ColumnFormat(date_pattern="DD/MM/YYYY")
        store.dispatch(UpdateColumnType(index=5, column_type=ColumnType.DATE, format=fmt))
        store.dispatch(SetValue(position=pos(0, 5), value="2024-01-02"))
        assert store.get_display_value(0, 5) == "02/01/2024"
        store.dispatch(move("F1", "F1", "F3"))
        assert store.get_display_value(2, 5) == "02/01/2024"
        store.dispatch(move("F3", "F3", "F1"))
        assert store.get_display_value(0, 5) == "02/01/2024"
