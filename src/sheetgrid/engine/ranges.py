"""Range relocation ("drag-move") planning and selection statistics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sheetgrid.contracts.grid import CellPosition, CellRange, CellStyle, RangeStats
from sheetgrid.validation.formatting import range_stats

if TYPE_CHECKING:
    from sheetgrid.engine.store import GridStore


@dataclass(frozen=True)
class CellMove:
    source: CellPosition
    target: CellPosition
    value: str
    style: CellStyle


@dataclass
class MovePlan:
    """Everything a move will do, computed before any cell is touched.

    ``cleared`` lists every non-empty source cell; ``dropped`` is the subset
    whose target falls outside the grid. Those values are lost.
    """

    d_row: int
    d_col: int
    selection: CellRange
    moves: list[CellMove] = field(default_factory=list)
    cleared: list[CellPosition] = field(default_factory=list)
    dropped: list[CellPosition] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.cleared


def _clipped_cells(store: GridStore, rng: CellRange) -> list[CellPosition]:
    """Positions of *rng* that lie on the grid, row-major."""
    n = rng.normalized()
    rows = range(max(n.start.row, 0), min(n.end.row, store.state.row_count - 1) + 1)
    cols = range(max(n.start.col, 0), min(n.end.col, store.state.col_count - 1) + 1)
    return [CellPosition(row=r, col=c) for r in rows for c in cols]


def plan_move(
    store: GridStore,
    anchor: CellPosition,
    source: CellRange,
    destination: CellPosition,
) -> MovePlan:
    """Compute the relocation of *source* by ``destination - anchor``."""
    d_row = destination.row - anchor.row
    d_col = destination.col - anchor.col
    normalized = source.normalized()
    plan = MovePlan(d_row=d_row, d_col=d_col, selection=normalized.shifted(d_row, d_col))

    for pos in _clipped_cells(store, normalized):
        value = store.get_display_value(pos.row, pos.col)
        if not value:
            continue
        plan.cleared.append(pos)
        target = pos.shifted(d_row, d_col)
        if store.state.contains(target):
            plan.moves.append(CellMove(
                source=pos,
                target=target,
                value=value,
                style=store.get_style(pos.row, pos.col),
            ))
        else:
            plan.dropped.append(pos)
    return plan


def selection_values(store: GridStore, rng: CellRange) -> list[str]:
    """Display values of every in-bounds cell of *rng*, row-major."""
    return [
        store.get_display_value(pos.row, pos.col)
        for pos in _clipped_cells(store, rng)
    ]


def selection_stats(store: GridStore, rng: CellRange) -> RangeStats:
    return range_stats(selection_values(store, rng), store.config.locale)
