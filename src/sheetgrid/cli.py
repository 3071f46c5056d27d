"""Typer CLI application: top-level commands and subcommand groups."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

import portalocker
import typer
import yaml
from openpyxl.utils import column_index_from_string
from pydantic import ValidationError

import sheetgrid
from sheetgrid.config import GridConfig
from sheetgrid.contracts.common import ChangeRecord, ErrorDetail, SessionCorruptError, Target, WarningDetail
from sheetgrid.contracts.grid import ColumnFormat, ColumnType
from sheetgrid.contracts.operations import COMMITTING_TYPES, parse_operation
from sheetgrid.engine.addressing import from_a1, parse_range_ref, range_to_a1
from sheetgrid.engine.dispatcher import (
    error_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from sheetgrid.engine.script import operation_payload
from sheetgrid.io.fileops import SessionLock
from sheetgrid.observe.events import Timer

# ---------------------------------------------------------------------------
# App & subcommand groups
# ---------------------------------------------------------------------------

_MAIN_HELP = """\
Spreadsheet grid state engine: typed columns, cell overrides, undo/redo and range moves,
persisted in a session file between commands.

**Typical session:**

1. `sheetgrid session init -f grid.json --data people.json`: load a dataset (types inferred when missing)
2. `sheetgrid cell set -f grid.json --ref B2 --value 1234.5`: validated and formatted per column type
3. `sheetgrid range move -f grid.json --source A1:B3 --to D5`: relocate non-empty cells
4. `sheetgrid undo -f grid.json`: step back (up to 50 entries)
5. `sheetgrid export -f grid.json --out grid.xlsx`

**Every command** returns a JSON `ResponseEnvelope`:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "warnings": [...], "history": {...}}`

**Refs** are A1-style and zero-indexed options are plain integers: `B2` is row index 1, column index 1.

**Exit codes:** 0=success, 10=validation, 40=conflict (session locked), 50=io, 90=internal
"""

_SESSION_EPILOG = """\
**Examples:**

`sheetgrid session init -f grid.json --data people.json`

`sheetgrid session init -f grid.json --data book.xlsx --sheet Staff --force`

`sheetgrid session show -f grid.json`: columns, row count, history position

`sheetgrid session reset -f grid.json`: discard every edit and the history
"""

_CELL_EPILOG = """\
**Examples:**

`sheetgrid cell get -f grid.json --ref B2`

`sheetgrid cell set -f grid.json --ref C4 --value "$1,200"`

`sheetgrid cell style -f grid.json --ref A1 --bold --align center --bg "#FFEEAA"`

`sheetgrid cell formula -f grid.json --ref D2 --formula "=SUM(A1:A3)"`: stored, never evaluated

Values that fail validation are still written; the envelope carries a `WARN_VALIDATION` warning.
"""

_COL_EPILOG = """\
**Examples:**

`sheetgrid col add -f grid.json --name Notes`: append a text column

`sheetgrid col retype -f grid.json --col C --type currency --currency EUR`

`sheetgrid col sort -f grid.json --col B --desc`

`--col` takes a letter (`C`) or a zero-based index (`2`).
"""

_ROW_EPILOG = """\
**Examples:**

`sheetgrid row add -f grid.json --index 0`: insert an empty first row

`sheetgrid row delete -f grid.json --index 3`
"""

_RANGE_EPILOG = """\
**Examples:**

`sheetgrid range stat -f grid.json --ref C2:C40`: sum, average and count of numeric cells

`sheetgrid range move -f grid.json --source A1:B2 --to C3`

`sheetgrid range select -f grid.json --ref A1:D4`

Cells moved past the grid edge are discarded and reported as `WARN_MOVE_DROPPED`.
"""


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(sheetgrid.__version__)
        raise typer.Exit()


# Root options shared by every command; reset on each invocation.
_options: dict[str, Any] = {"config": None}

app = typer.Typer(
    name="sheetgrid",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

session_app = typer.Typer(
    name="session", help="Create, inspect and reset session files.",
    epilog=_SESSION_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
cell_app = typer.Typer(
    name="cell", help="Read and write cell values, styles and formulas.",
    epilog=_CELL_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
col_app = typer.Typer(
    name="col", help="Insert, delete, rename, retype and sort columns.",
    epilog=_COL_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
row_app = typer.Typer(
    name="row", help="Insert and delete rows.",
    epilog=_ROW_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
range_app = typer.Typer(
    name="range", help="Range statistics, selection and moves.",
    epilog=_RANGE_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)

app.add_typer(session_app)
app.add_typer(cell_app)
app.add_typer(col_app)
app.add_typer(row_app)
app.add_typer(range_app)


@app.callback(invoke_without_command=True)
def _root(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
    config: Annotated[
        Optional[Path], typer.Option("--config", help="sheetgrid.yaml to use instead of the one beside the session")
    ] = None,
) -> None:
    if version:
        _version_callback(True)
    _options["config"] = None
    if config is not None:
        try:
            _options["config"] = GridConfig.load(config)
        except (ValueError, OSError, yaml.YAMLError) as e:
            _emit(error_envelope("config", "ERR_CONFIG_INVALID", f"Cannot load config {config}: {e}"))


# Type aliases for common options
FilePath = Annotated[str, typer.Option("--file", "-f", help="Path to the session file")]
CellRef = Annotated[str, typer.Option("--ref", help="Cell reference, e.g. B2")]
ColRef = Annotated[str, typer.Option("--col", help="Column letter (C) or zero-based index (2)")]
DryRun = Annotated[bool, typer.Option("--dry-run", help="Preview the result without writing the session")]
Backup = Annotated[bool, typer.Option("--backup", help="Create timestamped .bak copy before writing")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None):
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _load_ctx_or_emit(file: str, cmd: str):
    """Load a SessionContext, or emit an error envelope."""
    from sheetgrid.engine.session import SessionContext

    try:
        return SessionContext(file, config=_options["config"])
    except FileNotFoundError:
        _emit(error_envelope(cmd, "ERR_SESSION_NOT_FOUND", f"File not found: {file}", target=Target(file=file)))
    except SessionCorruptError as e:
        _emit(error_envelope(cmd, "ERR_SESSION_CORRUPT", str(e), target=Target(file=file)))
    except ValueError as e:
        _emit(error_envelope(cmd, "ERR_CONFIG_INVALID", str(e), target=Target(file=file)))


def _col_index(col: str) -> int:
    """``C`` or ``2`` to a zero-based column index. Raises ValueError."""
    col = col.strip()
    if col.lstrip("-").isdigit():
        return int(col)
    if not col.isalpha():
        raise ValueError(f"Invalid column: {col}")
    return column_index_from_string(col.upper()) - 1


def _col_index_or_emit(col: str, cmd: str, file: str) -> int:
    try:
        return _col_index(col)
    except ValueError as e:
        _emit(error_envelope(cmd, "ERR_REF_INVALID", str(e), target=Target(file=file, column=col)))
        return -1


def _mutate(
    cmd: str,
    file: str,
    payload: dict[str, Any],
    *,
    ref: str | None = None,
    column: str | None = None,
    dry_run: bool = False,
    backup: bool = False,
) -> None:
    """Parse one operation, dispatch it against the session and save."""
    target = Target(file=file, ref=ref, column=column)
    payload = dict(payload)
    op_type = payload.pop("type")
    try:
        op = parse_operation(operation_payload(op_type, payload))
    except ValidationError as e:
        _emit(error_envelope(cmd, "ERR_INVALID_ARGUMENT", str(e), target=target))
        return
    except ValueError as e:
        _emit(error_envelope(cmd, "ERR_REF_INVALID", str(e), target=target))
        return

    if not Path(file).exists():
        _emit(error_envelope(cmd, "ERR_SESSION_NOT_FOUND", f"File not found: {file}", target=target))
        return

    with Timer() as t:
        try:
            with SessionLock(file):
                ctx = _load_ctx_or_emit(file, cmd)
                store = ctx.store
                before = store.commit_count
                store.dispatch(op)
                committed = store.commit_count != before

                backup_path = None
                if not dry_run:
                    if backup:
                        from sheetgrid.io.fileops import backup as make_backup
                        backup_path = make_backup(ctx.path)
                    ctx.save()
        except portalocker.LockException:
            _emit(error_envelope(cmd, "ERR_LOCK_HELD", f"Session is locked by another process: {file}", target=target))
            return

    warnings: list[WarningDetail] = store.drain_warnings()
    if op.type in COMMITTING_TYPES and not committed:
        warnings.append(WarningDetail(
            code="WARN_NOOP",
            message="Operation changed nothing (index out of range, empty source, or order unchanged)",
            path=ref or column,
        ))

    result: dict[str, Any] = {"committed": committed, "dry_run": dry_run, "backup_path": backup_path}
    position = getattr(op, "position", None)
    if position is not None:
        result["cell"] = store.get_cell(position.row, position.col)
    change = ChangeRecord(
        type=op.type,
        target=ref or column or file,
        after=op.model_dump(mode="json", by_alias=True, exclude={"type"}, exclude_none=True),
        warnings=warnings,
    )
    env = success_envelope(
        cmd,
        result,
        target=target,
        changes=[change] if committed else [],
        warnings=warnings,
        duration_ms=t.elapsed_ms,
        history=store.history.info(),
    )
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid version
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the sheetgrid version.

    Example: `sheetgrid version`
    """
    env = success_envelope("version", {"version": sheetgrid.__version__})
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid session ...
# ---------------------------------------------------------------------------
@session_app.command("init")
def session_init_cmd(
    file: FilePath,
    data: Annotated[str, typer.Option("--data", "-d", help="Dataset to load: .json ({columns, items} or a list of rows) or .xlsx")],
    sheet: Annotated[Optional[str], typer.Option("--sheet", "-s", help="Worksheet to read when --data is .xlsx")] = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing session file")] = False,
):
    """Create a session file from a dataset. Mutating.

    Columns without a declared `type` get one inferred from their values.

    Example: `sheetgrid session init -f grid.json --data people.json`

    Example: `sheetgrid session init -f grid.json --data book.xlsx --sheet Staff --force`
    """
    from sheetgrid.engine.session import SessionContext, load_dataset

    target = Target(file=file)
    with Timer() as t:
        try:
            if sheet and Path(data).suffix.lower() in (".xlsx", ".xlsm"):
                from sheetgrid.adapters.openpyxl_io import read_dataset
                dataset = read_dataset(data, sheet=sheet)
            else:
                dataset = load_dataset(data)
        except FileNotFoundError as e:
            _emit(error_envelope("session.init", "ERR_DATA_NOT_FOUND", str(e), target=target))
            return
        except SessionCorruptError as e:
            _emit(error_envelope("session.init", "ERR_DATA_CORRUPT", str(e), target=target))
            return
        except ValueError as e:
            _emit(error_envelope("session.init", "ERR_INVALID_ARGUMENT", str(e), target=target))
            return

        try:
            ctx = SessionContext.create(file, dataset, force=force, config=_options["config"])
        except FileExistsError as e:
            _emit(error_envelope("session.init", "ERR_SESSION_EXISTS", str(e), target=target))
            return

    change = ChangeRecord(
        type="session.init",
        target=file,
        after={"data": data, "rows": ctx.store.row_count, "columns": ctx.store.col_count},
    )
    env = success_envelope(
        "session.init", ctx.summary(), target=target, changes=[change],
        duration_ms=t.elapsed_ms, history=ctx.store.history.info(),
    )
    _emit(env)


@session_app.command("show")
def session_show_cmd(file: FilePath):
    """Describe a session: columns, row count, overrides, selection and history position.

    Example: `sheetgrid session show -f grid.json`
    """
    with Timer() as t:
        ctx = _load_ctx_or_emit(file, "session.show")
        store = ctx.store
        result = ctx.summary()
        result["selected_cell"] = store.selected_cell.model_dump() if store.selected_cell else None
        result["selected_range"] = range_to_a1(store.selected_range) if store.selected_range else None
        result["editing_cell"] = store.editing_cell.model_dump() if store.editing_cell else None

    env = success_envelope(
        "session.show", result, target=Target(file=file),
        duration_ms=t.elapsed_ms, history=store.history.info(),
    )
    _emit(env)


@session_app.command("reset")
def session_reset_cmd(file: FilePath, backup: Backup = False):
    """Return to the dataset as loaded, dropping every edit and the undo history. Mutating.

    Example: `sheetgrid session reset -f grid.json --backup`
    """
    _mutate("session.reset", file, {"type": "reset"}, backup=backup)


@session_app.command("lock-status")
def session_lock_status_cmd(file: FilePath):
    """Check if a session file is locked by another process.

    Example: `sheetgrid session lock-status -f grid.json`
    """
    from sheetgrid.io.fileops import check_lock

    with Timer() as t:
        result = check_lock(file)

    env = success_envelope("session.lock_status", result, target=Target(file=file), duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid cell ...
# ---------------------------------------------------------------------------
@cell_app.command("get")
def cell_get_cmd(file: FilePath, ref: CellRef):
    """Read a cell: raw value, display value, style and formula.

    Example: `sheetgrid cell get -f grid.json --ref B2`
    """
    target = Target(file=file, ref=ref)
    try:
        pos = from_a1(ref)
    except ValueError as e:
        _emit(error_envelope("cell.get", "ERR_REF_INVALID", str(e), target=target))
        return

    with Timer() as t:
        ctx = _load_ctx_or_emit(file, "cell.get")
        store = ctx.store
        result = store.get_cell(pos.row, pos.col)

    warnings: list[WarningDetail] = []
    if not store.state.contains(pos):
        warnings.append(WarningDetail(
            code="WARN_OUT_OF_RANGE",
            message=f"{ref} is outside the {store.row_count}x{store.col_count} grid",
            path=ref,
        ))
    env = success_envelope("cell.get", result, target=target, warnings=warnings, duration_ms=t.elapsed_ms)
    _emit(env)


@cell_app.command("set")
def cell_set_cmd(
    file: FilePath,
    ref: CellRef,
    value: Annotated[str, typer.Option("--value", help="Value to write; validated and formatted by the column type")],
    dry_run: DryRun = False,
    backup: Backup = False,
):
    """Set a cell value. Mutating, recorded in history.

    Example: `sheetgrid cell set -f grid.json --ref C2 --value 1234.567`

    Example: `sheetgrid cell set -f grid.json --ref D2 --value yes`: boolean column stores "Yes"
    """
    _mutate("cell.set", file, {"type": "set_value", "ref": ref, "value": value},
            ref=ref, dry_run=dry_run, backup=backup)


@cell_app.command("style")
def cell_style_cmd(
    file: FilePath,
    ref: CellRef,
    bold: Annotated[Optional[bool], typer.Option("--bold/--no-bold", help="Set or clear bold")] = None,
    italic: Annotated[Optional[bool], typer.Option("--italic/--no-italic", help="Set or clear italic")] = None,
    align: Annotated[Optional[str], typer.Option("--align", help="Text alignment: left, center or right")] = None,
    bg: Annotated[Optional[str], typer.Option("--bg", help="Background color, e.g. #FFEEAA")] = None,
    dry_run: DryRun = False,
):
    """Merge style attributes into a cell. Mutating, not recorded in history.

    Only the attributes given are changed; the others keep their current value.
    Styles survive undo and redo.

    Example: `sheetgrid cell style -f grid.json --ref A1 --bold --align center`
    """
    style = {k: v for k, v in {
        "bold": bold, "italic": italic, "textAlign": align, "backgroundColor": bg,
    }.items() if v is not None}
    if not style:
        _emit(error_envelope("cell.style", "ERR_USAGE", "Give at least one of --bold, --italic, --align, --bg",
                             target=Target(file=file, ref=ref)))
        return
    _mutate("cell.style", file, {"type": "set_style", "ref": ref, "style": style}, ref=ref, dry_run=dry_run)


@cell_app.command("formula")
def cell_formula_cmd(
    file: FilePath,
    ref: CellRef,
    formula: Annotated[str, typer.Option("--formula", help="Formula text; stored as-is and never evaluated")],
    dry_run: DryRun = False,
):
    """Attach a formula string to a cell. Mutating, recorded in history.

    Example: `sheetgrid cell formula -f grid.json --ref E2 --formula "=C2*D2"`
    """
    _mutate("cell.formula", file, {"type": "set_formula", "ref": ref, "formula": formula},
            ref=ref, dry_run=dry_run)


@cell_app.command("select")
def cell_select_cmd(file: FilePath, ref: CellRef):
    """Select a single cell (clears any range selection).

    Example: `sheetgrid cell select -f grid.json --ref B2`
    """
    _mutate("cell.select", file, {"type": "select_cell", "ref": ref}, ref=ref)


@cell_app.command("edit")
def cell_edit_cmd(
    file: FilePath,
    ref: Annotated[Optional[str], typer.Option("--ref", help="Cell to start editing")] = None,
    stop: Annotated[bool, typer.Option("--stop", help="Leave edit mode without writing")] = False,
):
    """Enter or leave edit mode. While editing, range moves are ignored.

    Example: `sheetgrid cell edit -f grid.json --ref B2`

    Example: `sheetgrid cell edit -f grid.json --stop`
    """
    if stop:
        _mutate("cell.edit", file, {"type": "stop_editing"})
        return
    if not ref:
        _emit(error_envelope("cell.edit", "ERR_USAGE", "Give --ref or --stop", target=Target(file=file)))
        return
    _mutate("cell.edit", file, {"type": "start_editing", "ref": ref}, ref=ref)


# ---------------------------------------------------------------------------
# sheetgrid col ...
# ---------------------------------------------------------------------------
@col_app.command("add")
def col_add_cmd(
    file: FilePath,
    name: Annotated[Optional[str], typer.Option("--name", "-n", help="Display name (default: Column N)")] = None,
    index: Annotated[Optional[int], typer.Option("--index", help="Zero-based insert position (default: append)")] = None,
    dry_run: DryRun = False,
):
    """Insert a text column. Mutating, recorded in history.

    Example: `sheetgrid col add -f grid.json --name Notes`
    """
    _mutate("col.add", file, {"type": "add_column", "index": index, "name": name},
            column=name, dry_run=dry_run)


@col_app.command("delete")
def col_delete_cmd(file: FilePath, col: ColRef, dry_run: DryRun = False, backup: Backup = False):
    """Delete a column and every override in it. Mutating, recorded in history.

    Example: `sheetgrid col delete -f grid.json --col C`
    """
    index = _col_index_or_emit(col, "col.delete", file)
    _mutate("col.delete", file, {"type": "delete_column", "index": index},
            column=col, dry_run=dry_run, backup=backup)


@col_app.command("rename")
def col_rename_cmd(
    file: FilePath,
    col: ColRef,
    name: Annotated[str, typer.Option("--name", "-n", help="New display name")],
    dry_run: DryRun = False,
):
    """Change a column's display name. Mutating, recorded in history.

    Example: `sheetgrid col rename -f grid.json --col A --name "Full name"`
    """
    index = _col_index_or_emit(col, "col.rename", file)
    _mutate("col.rename", file, {"type": "update_column_name", "index": index, "name": name},
            column=col, dry_run=dry_run)


@col_app.command("retype")
def col_retype_cmd(
    file: FilePath,
    col: ColRef,
    column_type: Annotated[ColumnType, typer.Option("--type", "-t", help="New column type")],
    decimals: Annotated[Optional[int], typer.Option("--decimals", help="Fraction digits for number columns")] = None,
    currency: Annotated[Optional[str], typer.Option("--currency", help="ISO currency code, e.g. EUR")] = None,
    date_pattern: Annotated[Optional[str], typer.Option("--date-pattern", help="MM/DD/YYYY, DD/MM/YYYY or YYYY-MM-DD")] = None,
    dry_run: DryRun = False,
):
    """Change a column's type and format. Existing values are left as they are.

    Example: `sheetgrid col retype -f grid.json --col C --type currency --currency EUR`
    """
    index = _col_index_or_emit(col, "col.retype", file)
    try:
        fmt = ColumnFormat(decimals=decimals, currency_code=currency, date_pattern=date_pattern)
    except ValidationError as e:
        _emit(error_envelope("col.retype", "ERR_INVALID_ARGUMENT", str(e), target=Target(file=file, column=col)))
        return
    _mutate("col.retype", file, {
        "type": "update_column_type",
        "index": index,
        "column_type": column_type.value,
        "format": fmt.model_dump(exclude_none=True),
    }, column=col, dry_run=dry_run)


@col_app.command("sort")
def col_sort_cmd(
    file: FilePath,
    col: ColRef,
    desc: Annotated[bool, typer.Option("--desc", help="Sort descending")] = False,
    dry_run: DryRun = False,
):
    """Stable-sort rows by a column; empty cells go last. Mutating, recorded in history.

    Example: `sheetgrid col sort -f grid.json --col B --desc`
    """
    index = _col_index_or_emit(col, "col.sort", file)
    _mutate("col.sort", file, {"type": "sort_column", "index": index, "direction": "desc" if desc else "asc"},
            column=col, dry_run=dry_run)


# ---------------------------------------------------------------------------
# sheetgrid row ...
# ---------------------------------------------------------------------------
@row_app.command("add")
def row_add_cmd(
    file: FilePath,
    index: Annotated[Optional[int], typer.Option("--index", help="Zero-based insert position (default: append)")] = None,
    dry_run: DryRun = False,
):
    """Insert an empty row. Mutating, recorded in history.

    Example: `sheetgrid row add -f grid.json --index 0`
    """
    _mutate("row.add", file, {"type": "add_row", "index": index}, dry_run=dry_run)


@row_app.command("delete")
def row_delete_cmd(
    file: FilePath,
    index: Annotated[int, typer.Option("--index", help="Zero-based row index")],
    dry_run: DryRun = False,
    backup: Backup = False,
):
    """Delete a row and every override in it. Mutating, recorded in history.

    Example: `sheetgrid row delete -f grid.json --index 3`
    """
    _mutate("row.delete", file, {"type": "delete_row", "index": index}, dry_run=dry_run, backup=backup)


# ---------------------------------------------------------------------------
# sheetgrid range ...
# ---------------------------------------------------------------------------
@range_app.command("stat")
def range_stat_cmd(
    file: FilePath,
    ref: Annotated[str, typer.Option("--ref", help="Range reference, e.g. C2:C40")],
):
    """Sum, average and count of the numeric cells in a range.

    Example: `sheetgrid range stat -f grid.json --ref C2:C40`
    """
    from sheetgrid.engine.ranges import selection_stats
    from sheetgrid.validation.formatting import format_calculated_value

    target = Target(file=file, ref=ref)
    try:
        rng = parse_range_ref(ref)
    except ValueError as e:
        _emit(error_envelope("range.stat", "ERR_REF_INVALID", str(e), target=target))
        return

    with Timer() as t:
        ctx = _load_ctx_or_emit(file, "range.stat")
        stats = selection_stats(ctx.store, rng)
        locale = ctx.config.locale

    result = {
        "ref": range_to_a1(rng),
        **stats.model_dump(),
        "formatted": {
            "sum": format_calculated_value(stats.sum, locale),
            "average": format_calculated_value(stats.average, locale),
        },
    }
    env = success_envelope("range.stat", result, target=target, duration_ms=t.elapsed_ms)
    _emit(env)


@range_app.command("select")
def range_select_cmd(
    file: FilePath,
    ref: Annotated[str, typer.Option("--ref", help="Range reference, e.g. A1:D4")],
):
    """Select a rectangular range (clears the single-cell selection).

    Example: `sheetgrid range select -f grid.json --ref A1:D4`
    """
    _mutate("range.select", file, {"type": "select_range", "range": ref}, ref=ref)


@range_app.command("move")
def range_move_cmd(
    file: FilePath,
    source: Annotated[str, typer.Option("--source", help="Range to move, e.g. A1:B3")],
    to: Annotated[str, typer.Option("--to", help="Cell the anchor lands on")],
    anchor: Annotated[Optional[str], typer.Option("--anchor", help="Grab point inside the source (default: its top-left)")] = None,
    dry_run: DryRun = False,
    backup: Backup = False,
):
    """Move the non-empty cells of a range by `--to` minus `--anchor`. Mutating, one history entry.

    Values and styles travel; sources are cleared. Targets off the grid are dropped.

    Example: `sheetgrid range move -f grid.json --source A1:B3 --to D5`
    """
    if anchor is None:
        try:
            anchor = range_to_a1(parse_range_ref(source)).split(":")[0]
        except ValueError as e:
            _emit(error_envelope("range.move", "ERR_REF_INVALID", str(e), target=Target(file=file, ref=source)))
            return
    _mutate("range.move", file, {
        "type": "move_range", "anchor": anchor, "source": source, "destination": to,
    }, ref=source, dry_run=dry_run, backup=backup)


# ---------------------------------------------------------------------------
# sheetgrid undo / redo
# ---------------------------------------------------------------------------
@app.command("undo")
def undo_cmd(file: FilePath):
    """Step back one history entry. Cell styles are kept as they are now.

    Example: `sheetgrid undo -f grid.json`
    """
    _mutate("undo", file, {"type": "undo"})


@app.command("redo")
def redo_cmd(file: FilePath):
    """Step forward one history entry.

    Example: `sheetgrid redo -f grid.json`
    """
    _mutate("redo", file, {"type": "redo"})


# ---------------------------------------------------------------------------
# sheetgrid validate / infer
# ---------------------------------------------------------------------------
@app.command("validate")
def validate_cmd(
    value: Annotated[str, typer.Option("--value", help="Input to check")],
    column_type: Annotated[ColumnType, typer.Option("--type", "-t", help="Column type to validate against")],
    decimals: Annotated[Optional[int], typer.Option("--decimals", help="Fraction digits for number values")] = None,
    currency: Annotated[Optional[str], typer.Option("--currency", help="ISO currency code")] = None,
    date_pattern: Annotated[Optional[str], typer.Option("--date-pattern", help="Output date pattern")] = None,
    locale: Annotated[str, typer.Option("--locale", help="Babel locale for numbers and currency")] = "en_US",
):
    """Validate and format one value for a column type. No session needed.

    Example: `sheetgrid validate --value 50% --type percentage`: "50.0%"

    Example: `sheetgrid validate --value 2024-01-15 --type date --date-pattern DD/MM/YYYY`
    """
    from sheetgrid.validation.formatting import validate

    try:
        fmt = ColumnFormat(decimals=decimals, currency_code=currency, date_pattern=date_pattern)
    except ValidationError as e:
        _emit(error_envelope("validate", "ERR_INVALID_ARGUMENT", str(e)))
        return

    with Timer() as t:
        outcome = validate(value, column_type, fmt, locale=locale)

    env = success_envelope("validate", outcome.model_dump(), duration_ms=t.elapsed_ms)
    if not outcome.valid:
        env.ok = False
        env.errors.append(ErrorDetail(code="ERR_VALIDATION", message=outcome.error or "Invalid value"))
    _emit(env)


@app.command("infer")
def infer_cmd(
    values: Annotated[list[str], typer.Argument(help="Sample values of one column")],
):
    """Guess a column type from sample values.

    Example: `sheetgrid infer 10 20.5 30`: number

    Example: `sheetgrid infer a@x.com b@y.org`: email
    """
    from sheetgrid.validation.inference import infer_column_type

    with Timer() as t:
        inferred = infer_column_type(values)

    env = success_envelope("infer", {"type": inferred.value, "samples": len(values)}, duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid export
# ---------------------------------------------------------------------------
@app.command("export")
def export_cmd(
    file: FilePath,
    out: Annotated[str, typer.Option("--out", "-o", help="Destination .xlsx or .json file")],
    sheet: Annotated[str, typer.Option("--sheet", "-s", help="Worksheet name for .xlsx output")] = "Sheet1",
    formulas: Annotated[bool, typer.Option("--formulas", help="Write formula text instead of values where set (.xlsx)")] = False,
):
    """Export the current grid with every edit applied.

    `.xlsx` gets display values, styles and a header row; `.json` gets
    `{columns, items}` with override values merged in.

    Example: `sheetgrid export -f grid.json --out grid.xlsx`
    """
    import orjson

    from sheetgrid.io.fileops import atomic_write

    target = Target(file=file)
    with Timer() as t:
        ctx = _load_ctx_or_emit(file, "export")
        suffix = Path(out).suffix.lower()
        if suffix == ".xlsx":
            from sheetgrid.adapters.openpyxl_io import export_xlsx
            change = export_xlsx(ctx.store, out, sheet=sheet, formulas=formulas)
        elif suffix == ".json":
            dataset = ctx.store.materialize()
            atomic_write(out, orjson.dumps(
                dataset.model_dump(mode="json", by_alias=True, exclude_none=True),
                option=orjson.OPT_INDENT_2,
            ))
            change = ChangeRecord(type="export.json", target=out, impact={"rows": len(dataset.items)})
        else:
            _emit(error_envelope("export", "ERR_USAGE", f"Unsupported export format: {suffix or out}", target=target))
            return

    env = success_envelope("export", {"out": out}, target=target, changes=[change], duration_ms=t.elapsed_ms)
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid run
# ---------------------------------------------------------------------------
@app.command("run")
def run_cmd(
    script_file: Annotated[str, typer.Option("--script", "-x", help="Path to YAML script of operations")],
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Override the script's session file")] = None,
    trace: Annotated[Optional[str], typer.Option("--trace", help="Write a per-step trace JSON file")] = None,
):
    """Execute a multi-step YAML script of operations against a session.

    Step commands are the operation types (set_value, move_range, undo, ...)
    plus cell.get, range.stat, assert.display and export.xlsx. Cell and range
    arguments accept A1 refs.

    Example YAML script::

        name: cleanup
        session: grid.json
        steps:
          - { id: price, run: set_value, args: { ref: C2, value: "19.99" } }
          - { id: move, run: move_range, args: { anchor: A1, source: A1:B2, destination: D4 } }
          - { id: check, run: assert.display, args: { ref: D4, equals: "Alice" } }

    Example: `sheetgrid run --script cleanup.yaml`
    """
    from sheetgrid.engine.script import execute_script, load_script
    from sheetgrid.observe.events import TraceRecorder

    with Timer() as t:
        try:
            script = load_script(script_file)
        except (ValueError, OSError) as e:
            env = error_envelope("run", "ERR_SCRIPT_INVALID", f"Cannot parse script: {e}")
            _emit(env)
            return

        session_path = file or script.session
        if not session_path:
            env = error_envelope("run", "ERR_MISSING_PARAM", "Provide --file or set 'session' in the script")
            _emit(env)
            return

        if not Path(session_path).exists():
            _emit(error_envelope("run", "ERR_SESSION_NOT_FOUND", f"File not found: {session_path}", target=Target(file=session_path)))
            return

        recorder = TraceRecorder() if trace else None
        try:
            with SessionLock(session_path):
                result = execute_script(script, session_path, trace=recorder, config=_options["config"])
        except FileNotFoundError as e:
            _emit(error_envelope("run", "ERR_SESSION_NOT_FOUND", str(e), target=Target(file=session_path)))
            return
        except SessionCorruptError as e:
            _emit(error_envelope("run", "ERR_SESSION_CORRUPT", str(e), target=Target(file=session_path)))
            return
        except ValueError as e:
            _emit(error_envelope("run", "ERR_CONFIG_INVALID", str(e), target=Target(file=session_path)))
            return
        except portalocker.LockException:
            _emit(error_envelope("run", "ERR_LOCK_HELD", f"Session is locked: {session_path}", target=Target(file=session_path)))
            return
        if recorder is not None:
            result["trace"] = recorder.save(trace)

    env = success_envelope("run", result, target=Target(file=session_path), duration_ms=t.elapsed_ms)
    if not result.get("ok"):
        env.ok = False
        for step in result.get("steps", []):
            if not step.get("ok"):
                env.errors.append(ErrorDetail(
                    code="ERR_SCRIPT_STEP_FAILED",
                    message=f"Step '{step['step_id']}' ({step['run']}): {step.get('error', 'assertion failed')}",
                ))
    _emit(env)


# ---------------------------------------------------------------------------
# sheetgrid serve --stdio
# ---------------------------------------------------------------------------
@app.command("serve")
def serve_cmd(
    stdio: Annotated[bool, typer.Option("--stdio", help="Use stdin/stdout for JSON request/response")] = True,
):
    """Start a stdio server that keeps sessions loaded between requests.

    Each line is a JSON object:
    `{"id": "1", "command": "dispatch", "args": {"file": "grid.json", "operation": {"type": "set_value", "ref": "B2", "value": "42"}}}`

    Commands: session.show, dispatch, cell.get, range.stat, session.save, close.

    Example: `sheetgrid serve --stdio`
    """
    from sheetgrid.server.stdio import StdioServer
    server = StdioServer(config=_options["config"])
    server.run()


# ---------------------------------------------------------------------------
# Entrypoint (for `python -m sheetgrid`)
# ---------------------------------------------------------------------------
def main() -> None:
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        # Unhandled errors still produce a JSON envelope.
        env = error_envelope("unknown", "ERR_INTERNAL", str(exc))
        print_response(env)
        raise SystemExit(90) from exc


if __name__ == "__main__":
    main()
