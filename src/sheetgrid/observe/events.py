"""Engine event stream, command timing and script traces."""

from __future__ import annotations

import sys
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

import orjson

from sheetgrid.io.fileops import atomic_write

TRACE_VERSION = "1.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Timer:
    """Context manager that records how long its block took in ``elapsed_ms``."""

    def __init__(self) -> None:
        self._started = 0
        self.elapsed_ms: int = 0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter_ns()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.elapsed_ms = (time.perf_counter_ns() - self._started) // 1_000_000


class EventEmitter:
    """Writes grid engine events as NDJSON lines.

    Each line carries the event name, a per-emitter sequence number, a UTC
    timestamp and the event data. Disabled emitters still count what they
    would have written, so callers can inspect ``counts`` either way.
    """

    def __init__(self, enabled: bool = False, stream: TextIO | None = None) -> None:
        self.enabled = enabled
        self.counts: Counter[str] = Counter()
        self._stream = stream
        self._seq = 0

    def emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        self.counts[event] += 1
        if not self.enabled:
            return
        self._seq += 1
        line = orjson.dumps(
            {"event": event, "seq": self._seq, "timestamp": _now(), "data": data or {}},
            default=str,
        )
        out = self._stream or sys.stderr
        out.write(line.decode() + "\n")
        out.flush()


class TraceRecorder:
    """Collects one entry per executed script step."""

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []
        self._t0 = time.perf_counter_ns()

    def _elapsed_ms(self) -> int:
        return (time.perf_counter_ns() - self._t0) // 1_000_000

    def record(self, category: str, data: dict[str, Any]) -> None:
        self.entries.append({"category": category, "timestamp_ms": self._elapsed_ms(), **data})

    def summary(self) -> dict[str, int]:
        steps = [e for e in self.entries if e["category"] == "step"]
        passed = sum(1 for e in steps if e.get("ok"))
        return {"steps": len(steps), "passed": passed, "failed": len(steps) - passed}

    def save(self, path: str | Path) -> str:
        """Write the trace as indented JSON and return its path."""
        doc = {
            "trace_version": TRACE_VERSION,
            "generated_at": _now(),
            "total_duration_ms": self._elapsed_ms(),
            "summary": self.summary(),
            "entries": self.entries,
        }
        atomic_write(path, orjson.dumps(doc, option=orjson.OPT_INDENT_2, default=str))
        return str(path)
