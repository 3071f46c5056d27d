"""Mutable grid state owned by a ``GridStore`` and copied into history."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field

from sheetgrid.contracts.grid import CellOverride, CellPosition, CellRange, Dataset
from sheetgrid.engine.addressing import CellKey


@dataclass
class GridState:
    """Dataset, sparse overrides, selection and editing position.

    ``row_ids`` runs parallel to ``dataset.items`` and gives every row an
    identity that survives inserts, deletes and sorts.
    """

    dataset: Dataset
    row_ids: list[int]
    overrides: dict[CellKey, CellOverride] = field(default_factory=dict)
    selected_cell: CellPosition | None = None
    selected_range: CellRange | None = None
    editing_cell: CellPosition | None = None

    @classmethod
    def initial(cls, dataset: Dataset) -> "GridState":
        return cls(dataset=dataset.model_copy(deep=True), row_ids=list(range(len(dataset.items))))

    def copy(self) -> "GridState":
        return copy.deepcopy(self)

    @property
    def row_count(self) -> int:
        return len(self.dataset.items)

    @property
    def col_count(self) -> int:
        return len(self.dataset.columns)

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.row_count and 0 <= col < self.col_count

    def contains(self, pos: CellPosition) -> bool:
        return self.in_bounds(pos.row, pos.col)

    def prune_empty(self, key: CellKey) -> None:
        ov = self.overrides.get(key)
        if ov is not None and ov.is_empty():
            del self.overrides[key]
