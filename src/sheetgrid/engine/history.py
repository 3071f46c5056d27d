"""Bounded linear undo/redo history over grid-state snapshots."""

from __future__ import annotations

from sheetgrid.contracts.common import HistoryInfo
from sheetgrid.contracts.grid import CellOverride, CellStyle
from sheetgrid.engine.addressing import CellKey
from sheetgrid.engine.state import GridState

DEFAULT_LIMIT = 50


class History:
    """Ordered snapshots with a cursor.

    Entries are deep copies taken after each committing operation; the first
    entry is the state as loaded. Callers get copies back from ``undo`` and
    ``redo`` so a restored state can be mutated without touching the entry.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        self.limit = limit
        self._entries: list[GridState] = []
        self._index = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def index(self) -> int:
        return self._index

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def entries(self) -> list[GridState]:
        return [e.copy() for e in self._entries]

    def reset(self, baseline: GridState) -> None:
        self._entries = [baseline.copy()]
        self._index = 0

    def restore(self, entries: list[GridState], index: int) -> None:
        """Reinstate entries read back from a session file."""
        entries = entries[-self.limit:]
        if not entries:
            self._entries, self._index = [], -1
            return
        self._entries = [e.copy() for e in entries]
        self._index = min(max(index, 0), len(self._entries) - 1)

    def commit(self, state: GridState) -> None:
        del self._entries[self._index + 1:]
        self._entries.append(state.copy())
        if len(self._entries) > self.limit:
            del self._entries[: len(self._entries) - self.limit]
        self._index = len(self._entries) - 1

    def undo(self) -> GridState | None:
        if not self.can_undo:
            return None
        self._index -= 1
        return self._entries[self._index].copy()

    def redo(self) -> GridState | None:
        if not self.can_redo:
            return None
        self._index += 1
        return self._entries[self._index].copy()

    def info(self) -> HistoryInfo:
        return HistoryInfo(
            index=self._index,
            length=len(self._entries),
            can_undo=self.can_undo,
            can_redo=self.can_redo,
        )


def carry_styles(live: GridState, restored: GridState) -> None:
    """Keep the live grid's styles on *restored*.

    Cells are matched by identity (row id, column key), so a style follows
    its cell even when rows or columns sit at different indices in the
    restored snapshot. For every cell present in both grids the live style
    wins, including "no style". Cells that exist only in *restored* keep the
    snapshot's style.
    """
    live_styles: dict[tuple[int, str], CellStyle] = {}
    for key, ov in live.overrides.items():
        if ov.style is not None and live.in_bounds(key.row, key.col):
            ident = (live.row_ids[key.row], live.dataset.columns[key.col].key)
            live_styles[ident] = ov.style

    live_rows = set(live.row_ids)
    live_cols = set(live.dataset.column_keys())

    for key in list(restored.overrides):
        if not restored.in_bounds(key.row, key.col):
            continue
        row_id = restored.row_ids[key.row]
        col_key = restored.dataset.columns[key.col].key
        if row_id in live_rows and col_key in live_cols:
            restored.overrides[key].style = None
            restored.prune_empty(key)

    row_pos = {rid: i for i, rid in enumerate(restored.row_ids)}
    col_pos = {c.key: j for j, c in enumerate(restored.dataset.columns)}
    for (row_id, col_key), style in live_styles.items():
        if row_id in row_pos and col_key in col_pos:
            key = CellKey(row_pos[row_id], col_pos[col_key])
            ov = restored.overrides.setdefault(key, CellOverride())
            ov.style = style.model_copy()
