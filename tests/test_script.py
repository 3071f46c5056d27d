"""Tests for YAML operation scripts."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sheetgrid.contracts.script import ScriptDefaults, ScriptSpec, ScriptStep
from sheetgrid.engine.script import SCRIPT_COMMANDS, execute_script, load_script, operation_payload
from sheetgrid.engine.session import SessionContext
from sheetgrid.observe.events import TraceRecorder


def _spec(*steps: dict, **kwargs) -> ScriptSpec:
    return ScriptSpec(steps=[ScriptStep(**s) for s in steps], **kwargs)


class TestLoadScript:
    def test_load(self, tmp_path: Path):
        path = tmp_path / "s.yaml"
        path.write_text(
            "name: demo\n"
            "defaults: { stop_on_error: true }\n"
            "steps:\n"
            "  - { id: one, run: add_row }\n"
        )
        spec = load_script(path)
        assert spec.name == "demo"
        assert spec.defaults.stop_on_error is True
        assert spec.defaults.save is True
        assert spec.steps[0].args == {}

    def test_bom_is_ignored(self, tmp_path: Path):
        path = tmp_path / "s.yaml"
        path.write_bytes("\ufeffsteps:\n  - { id: one, run: undo }\n".encode("utf-8"))
        assert load_script(path).steps[0].run == "undo"

    @pytest.mark.parametrize("body,message", [
        ("- just a list\n", "mapping"),
        ("steps: []\n", "at least one step"),
        ("steps: nope\n", "'steps' as an array"),
        ("steps: [{id: a, run: undo}]\nextra: 1\n", "Unknown script keys: extra"),
    ])
    def test_rejects(self, tmp_path: Path, body: str, message: str):
        path = tmp_path / "s.yaml"
        path.write_text(body)
        with pytest.raises(ValueError, match=message):
            load_script(path)

    def test_unknown_step_command(self):
        with pytest.raises(ValidationError, match="Unknown script step command"):
            ScriptStep(id="x", run="wb.inspect")

    def test_command_vocabulary(self):
        assert {"set_value", "move_range", "undo", "cell.get", "assert.display", "export.xlsx"} <= SCRIPT_COMMANDS


class TestOperationPayload:
    def test_ref_becomes_position(self):
        assert operation_payload("set_value", {"ref": "C4", "value": 1}) == {
            "type": "set_value", "position": {"row": 3, "col": 2}, "value": 1,
        }

    def test_ref_becomes_range_for_select_range(self):
        payload = operation_payload("select_range", {"ref": "A1:B2"})
        assert payload["range"] == {"start": {"row": 0, "col": 0}, "end": {"row": 1, "col": 1}}

    def test_move_args(self):
        payload = operation_payload("move_range", {"anchor": "A1", "source": "A1:B2", "destination": "C3"})
        assert payload["anchor"] == {"row": 0, "col": 0}
        assert payload["destination"] == {"row": 2, "col": 2}
        assert payload["source"]["end"] == {"row": 1, "col": 1}

    def test_mappings_pass_through(self):
        position = {"row": 1, "col": 1}
        assert operation_payload("select_cell", {"position": position})["position"] == position

    def test_bad_ref(self):
        with pytest.raises(ValueError):
            operation_payload("set_value", {"ref": "nope", "value": 1})


class TestExecute:
    def test_steps_run_in_order_and_save(self, session_file: Path):
        spec = _spec(
            {"id": "set", "run": "set_value", "args": {"ref": "A1", "value": "Zed"}},
            {"id": "move", "run": "move_range", "args": {"anchor": "A1", "source": "A1", "destination": "A2"}},
            {"id": "check", "run": "assert.display", "args": {"ref": "A2", "equals": "Zed"}},
            {"id": "read", "run": "cell.get", "args": {"ref": "A2"}},
            {"id": "sum", "run": "range.stat", "args": {"ref": "B1:B3"}},
        )
        result = execute_script(spec, session_file)
        assert result["ok"] is True
        assert result["steps_run"] == 5
        assert result["steps"][0]["result"]["committed"] is True
        assert result["steps"][3]["result"]["display"] == "Zed"
        assert result["steps"][4]["result"]["sum"] == 96
        assert result["history"]["index"] == 2

        store = SessionContext(session_file).store
        assert store.get_display_value(1, 0) == "Zed"
        assert store.get_display_value(0, 0) == ""

    def test_failed_step_continues_by_default(self, session_file: Path):
        spec = _spec(
            {"id": "bad", "run": "set_value", "args": {"ref": "A1"}},
            {"id": "ok", "run": "add_row"},
        )
        result = execute_script(spec, session_file)
        assert result["ok"] is False
        assert result["steps_run"] == 2
        assert result["steps_passed"] == 1
        assert "validation error" in result["steps"][0]["error"]

    def test_stop_on_error(self, session_file: Path):
        spec = _spec(
            {"id": "check", "run": "assert.display", "args": {"ref": "A1", "equals": "Bob"}},
            {"id": "never", "run": "add_row"},
            defaults=ScriptDefaults(stop_on_error=True),
        )
        result = execute_script(spec, session_file)
        assert result["steps_run"] == 1
        assert result["steps"][0]["result"]["actual"] == "Alice"
        assert SessionContext(session_file).store.row_count == 3

    def test_missing_arg(self, session_file: Path):
        result = execute_script(_spec({"id": "g", "run": "cell.get"}), session_file)
        assert result["steps"][0]["ok"] is False
        assert "ref" in result["steps"][0]["error"]

    def test_no_save(self, session_file: Path):
        spec = _spec({"id": "a", "run": "add_row"}, defaults=ScriptDefaults(save=False))
        result = execute_script(spec, session_file)
        assert result["ok"] is True
        assert SessionContext(session_file).store.row_count == 3

    def test_warnings_attached_to_step(self, session_file: Path):
        spec = _spec({"id": "age", "run": "set_value", "args": {"ref": "B1", "value": "old"}})
        step = execute_script(spec, session_file)["steps"][0]
        assert step["ok"] is True
        assert step["warnings"][0]["code"] == "WARN_VALIDATION"

    def test_export_step(self, session_file: Path, tmp_path: Path):
        out = tmp_path / "out.xlsx"
        spec = _spec({"id": "x", "run": "export.xlsx", "args": {"path": str(out), "sheet": "Grid"}})
        result = execute_script(spec, session_file)
        assert result["steps"][0]["result"]["type"] == "export.xlsx"
        assert out.exists()

    def test_trace(self, session_file: Path):
        recorder = TraceRecorder()
        execute_script(_spec({"id": "u", "run": "undo"}, {"id": "r", "run": "redo"}), session_file, trace=recorder)
        assert [e["step_id"] for e in recorder.entries] == ["u", "r"]
        assert all(e["category"] == "step" for e in recorder.entries)
