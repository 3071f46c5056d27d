"""SessionContext: loads datasets, persists a GridStore with its history between commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson
from pydantic import ValidationError

from sheetgrid.config import GridConfig
from sheetgrid.contracts.common import SessionCorruptError, Target
from sheetgrid.contracts.grid import CellOverride, CellPosition, CellRange, Dataset
from sheetgrid.engine.addressing import key_from_str, key_to_str
from sheetgrid.engine.state import GridState
from sheetgrid.engine.store import GridStore
from sheetgrid.io.fileops import atomic_write, fingerprint
from sheetgrid.observe.events import EventEmitter
from sheetgrid.validation.inference import infer_column_type

SESSION_FORMAT = "sheetgrid-session"
SESSION_VERSION = 1


# ---------------------------------------------------------------------------
# Dataset loading
# ---------------------------------------------------------------------------
def dataset_from_data(data: Any) -> Dataset:
    """Build a Dataset from parsed JSON.

    Accepts ``{"columns": [...], "items": [...]}``, ``{"Values": [...]}`` or a
    bare list of row objects. Columns without an explicit ``type`` get one
    inferred from their values.
    """
    if isinstance(data, list):
        data = {"items": data}
    if not isinstance(data, dict):
        raise SessionCorruptError("Dataset must be a JSON object or a list of rows")
    if "items" not in data and "Values" in data:
        data = {**data, "items": data["Values"]}

    items = data.get("items") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise SessionCorruptError("Dataset 'items' must be a list of objects")

    raw_columns = data.get("columns")
    if raw_columns is None:
        raw_columns = []
        for item in items:
            for key in item:
                if key not in raw_columns:
                    raw_columns.append(key)
    columns: list[dict[str, Any]] = []
    for col in raw_columns:
        col = {"key": col, "displayName": col} if isinstance(col, str) else dict(col)
        if not col.get("type") and "key" in col:
            col["type"] = infer_column_type([item.get(col["key"]) for item in items]).value
        columns.append(col)

    try:
        return Dataset.model_validate({"columns": columns, "items": items})
    except ValidationError as e:
        raise SessionCorruptError(f"Invalid dataset: {e}") from e


def load_dataset(path: str | Path) -> Dataset:
    """Read a dataset from a ``.json`` or ``.xlsx`` file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Dataset not found: {p}")
    if p.suffix.lower() in (".xlsx", ".xlsm"):
        from sheetgrid.adapters.openpyxl_io import read_dataset
        return read_dataset(p)
    try:
        data = orjson.loads(p.read_bytes())
    except orjson.JSONDecodeError as e:
        raise SessionCorruptError(f"Cannot parse dataset {p}: {e}") from e
    return dataset_from_data(data)


# ---------------------------------------------------------------------------
# State (de)serialization
# ---------------------------------------------------------------------------
def _dump_model(model: Any) -> Any:
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def state_to_dict(state: GridState) -> dict[str, Any]:
    return {
        "dataset": _dump_model(state.dataset),
        "row_ids": list(state.row_ids),
        "overrides": {key_to_str(k): _dump_model(ov) for k, ov in state.overrides.items()},
        "selected_cell": _dump_model(state.selected_cell),
        "selected_range": _dump_model(state.selected_range),
        "editing_cell": _dump_model(state.editing_cell),
    }


def state_from_dict(data: dict[str, Any]) -> GridState:
    dataset = Dataset.model_validate(data["dataset"])
    row_ids = [int(r) for r in data.get("row_ids", range(len(dataset.items)))]
    if len(row_ids) != len(dataset.items):
        raise SessionCorruptError("row_ids length does not match item count")

    def opt(model: type, value: Any) -> Any:
        return None if value is None else model.model_validate(value)

    return GridState(
        dataset=dataset,
        row_ids=row_ids,
        overrides={
            key_from_str(k): CellOverride.model_validate(v)
            for k, v in (data.get("overrides") or {}).items()
        },
        selected_cell=opt(CellPosition, data.get("selected_cell")),
        selected_range=opt(CellRange, data.get("selected_range")),
        editing_cell=opt(CellPosition, data.get("editing_cell")),
    )


def store_to_dict(store: GridStore) -> dict[str, Any]:
    return {
        "format": SESSION_FORMAT,
        "version": SESSION_VERSION,
        "base": _dump_model(store.base),
        "state": state_to_dict(store.state),
        "history": [state_to_dict(s) for s in store.history.entries()],
        "history_index": store.history.index,
        "next_row_id": store.next_row_id,
    }


def store_from_dict(
    data: Any,
    *,
    config: GridConfig | None = None,
    emitter: EventEmitter | None = None,
) -> GridStore:
    if not isinstance(data, dict) or data.get("format") != SESSION_FORMAT:
        raise SessionCorruptError("Not a sheetgrid session file")
    if data.get("version") != SESSION_VERSION:
        raise SessionCorruptError(f"Unsupported session version: {data.get('version')}")
    try:
        return GridStore.from_parts(
            Dataset.model_validate(data["base"]),
            state_from_dict(data["state"]),
            [state_from_dict(s) for s in data.get("history", [])],
            int(data.get("history_index", -1)),
            int(data.get("next_row_id", 0)),
            config=config,
            emitter=emitter,
        )
    except (KeyError, TypeError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        raise SessionCorruptError(f"Corrupt session: {e}") from e


# ---------------------------------------------------------------------------
# Session files
# ---------------------------------------------------------------------------
class SessionContext:
    """Wraps a session file and the GridStore it holds."""

    @classmethod
    def create(
        cls,
        path: str | Path,
        dataset: Dataset,
        *,
        force: bool = False,
        config: GridConfig | None = None,
    ) -> "SessionContext":
        """Write a fresh session for *dataset*. Raises FileExistsError unless *force*."""
        p = Path(path).resolve()
        if p.exists() and not force:
            raise FileExistsError(f"Session already exists: {p}")
        store = GridStore(dataset, config=config or _config_for(p))
        atomic_write(p, orjson.dumps(store_to_dict(store)))
        return cls(p, config=config)

    def __init__(
        self,
        path: str | Path,
        *,
        config: GridConfig | None = None,
        emitter: EventEmitter | None = None,
    ) -> None:
        self.path = Path(path).resolve()
        if not self.path.exists():
            raise FileNotFoundError(f"Session not found: {self.path}")
        self.config = config or _config_for(self.path)
        self.fp = fingerprint(self.path)
        try:
            data = orjson.loads(self.path.read_bytes())
        except orjson.JSONDecodeError as e:
            raise SessionCorruptError(f"Cannot open session {self.path}: {e}") from e
        self.store = store_from_dict(data, config=self.config, emitter=emitter)

    def target(self, **overrides: str | None) -> Target:
        t = Target(file=str(self.path))
        for k, v in overrides.items():
            if v is not None:
                setattr(t, k, v)
        return t

    def summary(self) -> dict[str, Any]:
        store = self.store
        return {
            "path": str(self.path),
            "fingerprint": self.fp,
            "rows": store.row_count,
            "columns": [
                c.model_dump(mode="json", by_alias=True, exclude_none=True)
                for c in store.columns
            ],
            "overrides": len(store.overrides),
            "history": store.history.info().model_dump(),
            "config": self.config.to_dict(),
        }

    def save(self, path: str | Path | None = None) -> bytes:
        """Serialize the store; write to *path* (default: the session file) atomically."""
        data = orjson.dumps(store_to_dict(self.store))
        atomic_write(path or self.path, data)
        return data


def _config_for(path: Path) -> GridConfig:
    return GridConfig.load_from_dir(path.parent) or GridConfig()
