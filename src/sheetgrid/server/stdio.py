"""stdio server mode: JSON line-delimited protocol over stdin/stdout.

Sessions stay loaded between requests, so a client can dispatch a stream of
operations without re-reading the session file each time. Nothing is written
back until a ``session.save`` request.
"""

from __future__ import annotations

import sys
from typing import Any, TextIO

import orjson
from pydantic import ValidationError

from sheetgrid.config import GridConfig
from sheetgrid.contracts.common import SessionCorruptError
from sheetgrid.contracts.operations import parse_operation
from sheetgrid.engine.addressing import from_a1, parse_range_ref, range_to_a1
from sheetgrid.engine.ranges import selection_stats
from sheetgrid.engine.script import operation_payload
from sheetgrid.engine.session import SessionContext


def _dump(model: Any) -> Any:
    return None if model is None else model.model_dump(mode="json", by_alias=True)


class StdioServer:
    """Line-oriented request loop keeping one loaded session per file."""

    def __init__(self, config: GridConfig | None = None) -> None:
        self._config = config
        self._sessions: dict[str, SessionContext] = {}

    def _get_ctx(self, file: str) -> SessionContext:
        if file not in self._sessions:
            self._sessions[file] = SessionContext(file, config=self._config)
        return self._sessions[file]

    def _close_all(self) -> None:
        self._sessions.clear()

    def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        req_id = request.get("id", "")
        command = request.get("command", "")
        args = request.get("args") or {}

        if command == "close":
            self._close_all()
            return {"id": req_id, "ok": True, "result": "closed"}

        if not isinstance(args, dict):
            return {"id": req_id, "ok": False, "error": "'args' must be a JSON object"}

        try:
            file = args.get("file", "")
            if not file:
                return {"id": req_id, "ok": False, "error": "Missing 'file' in args"}
            if not isinstance(file, str):
                return {"id": req_id, "ok": False, "error": "'file' must be a string"}

            if command == "session.show":
                ctx = self._get_ctx(file)
                return {"id": req_id, "ok": True, "result": ctx.summary()}

            elif command == "dispatch":
                ctx = self._get_ctx(file)
                raw = args.get("operation") or {}
                if not isinstance(raw, dict):
                    return {"id": req_id, "ok": False, "error": "'operation' must be a JSON object"}
                raw = dict(raw)
                op = parse_operation(operation_payload(raw.pop("type", ""), raw))
                ctx.store.dispatch(op)
                store = ctx.store
                return {"id": req_id, "ok": True, "result": {
                    "type": op.type,
                    "history": store.history.info().model_dump(),
                    "selected_cell": _dump(store.selected_cell),
                    "selected_range": _dump(store.selected_range),
                    "editing_cell": _dump(store.editing_cell),
                    "warnings": [w.model_dump() for w in store.drain_warnings()],
                }}

            elif command == "cell.get":
                ctx = self._get_ctx(file)
                pos = from_a1(str(args.get("ref", "")))
                return {"id": req_id, "ok": True, "result": ctx.store.get_cell(pos.row, pos.col)}

            elif command == "range.stat":
                ctx = self._get_ctx(file)
                rng = parse_range_ref(str(args.get("ref", "")))
                stats = selection_stats(ctx.store, rng)
                return {"id": req_id, "ok": True, "result": {"ref": range_to_a1(rng), **stats.model_dump()}}

            elif command == "session.save":
                ctx = self._get_ctx(file)
                ctx.save()
                return {"id": req_id, "ok": True, "result": {"saved": str(ctx.path)}}

            else:
                return {"id": req_id, "ok": False, "error": f"Unknown command: {command}"}

        except ValidationError as e:
            return {"id": req_id, "ok": False, "error": f"Invalid operation: {e.error_count()} validation error(s)"}
        except (SessionCorruptError, ValueError, KeyError, OSError) as e:
            return {"id": req_id, "ok": False, "error": str(e)}

    def _reply(self, out: TextIO, response: dict[str, Any]) -> None:
        out.write(orjson.dumps(response, default=str).decode() + "\n")
        out.flush()

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """Answer one JSON request per input line until stdin closes."""
        out = stdout or sys.stdout
        for raw in stdin or sys.stdin:
            if not raw.strip():
                continue
            try:
                request = orjson.loads(raw)
            except orjson.JSONDecodeError as e:
                self._reply(out, {"ok": False, "error": f"Invalid JSON: {e}"})
                continue
            if not isinstance(request, dict):
                self._reply(out, {"ok": False, "error": "Request must be a JSON object"})
                continue
            self._reply(out, self.handle_request(request))
        self._close_all()
