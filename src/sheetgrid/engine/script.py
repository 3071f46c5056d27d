"""Script engine for ``sheetgrid run``: executes YAML operation scripts against a session."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sheetgrid.config import GridConfig
from sheetgrid.contracts.operations import OPERATION_TYPES, parse_operation
from sheetgrid.contracts.script import ScriptSpec
from sheetgrid.engine.addressing import from_a1, parse_range_ref, range_to_a1
from sheetgrid.engine.ranges import selection_stats
from sheetgrid.engine.session import SessionContext
from sheetgrid.io.fileops import read_text_safe
from sheetgrid.observe.events import TraceRecorder

# Step commands other than the operation types themselves.
READ_COMMANDS: frozenset[str] = frozenset({"cell.get", "range.stat", "assert.display"})

SCRIPT_COMMANDS: frozenset[str] = OPERATION_TYPES | READ_COMMANDS | {"export.xlsx"}

# Args that may be written as A1 references instead of {row, col} mappings.
_POSITION_ARGS = ("position", "anchor", "destination")
_RANGE_ARGS = ("range", "source")


def load_script(path: str | Path) -> ScriptSpec:
    """Load a script spec from a YAML file."""
    text = read_text_safe(path)
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Script YAML must be a mapping/object.")

    allowed_keys = {"schema_version", "name", "session", "defaults", "steps"}
    unknown_keys = sorted(set(data) - allowed_keys)
    if unknown_keys:
        raise ValueError(f"Unknown script keys: {', '.join(unknown_keys)}")

    steps = data.get("steps")
    if not isinstance(steps, list):
        raise ValueError("Script must define 'steps' as an array.")
    if not steps:
        raise ValueError("Script must contain at least one step.")

    return ScriptSpec(**data)


def operation_payload(op_type: str, args: dict[str, Any]) -> dict[str, Any]:
    """Build a raw operation mapping, expanding A1 refs (``ref: B3``, ``source: A1:C4``)."""
    payload: dict[str, Any] = {"type": op_type, **args}
    ref = payload.pop("ref", None)
    if ref is not None:
        if op_type == "select_range":
            payload["range"] = ref
        else:
            payload["position"] = ref
    for name in _POSITION_ARGS:
        if isinstance(payload.get(name), str):
            payload[name] = from_a1(payload[name]).model_dump()
    for name in _RANGE_ARGS:
        if isinstance(payload.get(name), str):
            payload[name] = parse_range_ref(payload[name]).model_dump()
    return payload


def execute_script(
    script: ScriptSpec,
    session_path: str | Path,
    *,
    trace: TraceRecorder | None = None,
    config: GridConfig | None = None,
) -> dict[str, Any]:
    """Execute a script against a session file. Returns combined results."""
    ctx = SessionContext(session_path, config=config)
    store = ctx.store
    results: list[dict[str, Any]] = []
    mutated = False

    for step in script.steps:
        step_result: dict[str, Any] = {"step_id": step.id, "run": step.run}
        try:
            if step.run in OPERATION_TYPES:
                op = parse_operation(operation_payload(step.run, step.args))
                before = store.commit_count
                store.dispatch(op)
                mutated = True
                step_result["result"] = {
                    "committed": store.commit_count != before,
                    "history": store.history.info().model_dump(),
                }
                step_result["ok"] = True

            elif step.run == "cell.get":
                pos = from_a1(step.args["ref"])
                step_result["result"] = store.get_cell(pos.row, pos.col)
                step_result["ok"] = True

            elif step.run == "range.stat":
                rng = parse_range_ref(step.args["ref"])
                stats = selection_stats(store, rng)
                step_result["result"] = {"ref": range_to_a1(rng), **stats.model_dump()}
                step_result["ok"] = True

            elif step.run == "assert.display":
                pos = from_a1(step.args["ref"])
                actual = store.get_display_value(pos.row, pos.col)
                expected = str(step.args["equals"])
                step_result["result"] = {"ref": step.args["ref"], "expected": expected, "actual": actual}
                step_result["ok"] = actual == expected

            elif step.run == "export.xlsx":
                from sheetgrid.adapters.openpyxl_io import export_xlsx
                change = export_xlsx(
                    store,
                    step.args["path"],
                    sheet=step.args.get("sheet", "Sheet1"),
                    formulas=step.args.get("formulas", False),
                )
                step_result["result"] = change.model_dump()
                step_result["ok"] = True

            else:
                step_result["ok"] = False
                step_result["error"] = f"Unknown step command: {step.run}"

        except ValidationError as e:
            step_result["ok"] = False
            step_result["error"] = f"Invalid arguments: {e.error_count()} validation error(s)"
        except (KeyError, ValueError, OSError) as e:
            step_result["ok"] = False
            step_result["error"] = str(e)

        warnings = store.drain_warnings()
        if warnings:
            step_result["warnings"] = [w.model_dump() for w in warnings]
        if trace is not None:
            trace.record("step", {"step_id": step.id, "run": step.run, "ok": step_result["ok"]})
        results.append(step_result)
        if not step_result["ok"] and script.defaults.stop_on_error:
            break

    if mutated and script.defaults.save:
        ctx.save()

    all_ok = all(r.get("ok", False) for r in results)
    return {
        "script": script.name,
        "steps_total": len(script.steps),
        "steps_run": len(results),
        "steps_passed": sum(1 for r in results if r.get("ok")),
        "ok": all_ok,
        "history": store.history.info().model_dump(),
        "steps": results,
    }
