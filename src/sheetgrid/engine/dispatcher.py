"""Envelope builders, JSON output and the error-code to exit-code table."""

from __future__ import annotations

import sys
from typing import Any

import orjson

from sheetgrid.contracts.common import (
    ChangeRecord,
    ErrorDetail,
    HistoryInfo,
    Metrics,
    ResponseEnvelope,
    Target,
    WarningDetail,
)

EXIT_CODES = {
    "success": 0,
    "validation": 10,
    "conflict": 40,
    "io": 50,
    "internal": 90,
}

# Substrings of an error code that mark bad input from the caller.
VALIDATION_CODE_MARKERS = (
    "VALIDATION",
    "INVALID",
    "RANGE",
    "REF",
    "USAGE",
    "SCRIPT",
    "MISSING_",
    "CONFIG",
)


def _is_conflict(code: str) -> bool:
    return "LOCK" in code or "CONFLICT" in code


def _is_io(code: str) -> bool:
    return (
        code.startswith("ERR_IO")
        or code.endswith("NOT_FOUND")
        or "CORRUPT" in code
        or "EXISTS" in code
    )


def _is_validation(code: str) -> bool:
    return any(marker in code for marker in VALIDATION_CODE_MARKERS)


# First match wins: a lock problem on a missing file is still a conflict.
_EXIT_CLASSES = (
    (_is_conflict, "conflict"),
    (_is_io, "io"),
    (_is_validation, "validation"),
)


def success_envelope(
    command: str,
    result: Any,
    *,
    target: Target | None = None,
    changes: list[ChangeRecord] | None = None,
    warnings: list[WarningDetail] | None = None,
    duration_ms: int = 0,
    history: HistoryInfo | None = None,
) -> ResponseEnvelope:
    return ResponseEnvelope(
        command=command,
        target=target or Target(),
        result=result,
        changes=changes or [],
        warnings=warnings or [],
        metrics=Metrics(duration_ms=duration_ms),
        history=history,
    )


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    target: Target | None = None,
    details: dict | None = None,
    duration_ms: int = 0,
) -> ResponseEnvelope:
    error = ErrorDetail(code=code, message=message, details=details)
    return ResponseEnvelope(
        ok=False,
        command=command,
        target=target or Target(),
        errors=[error],
        metrics=Metrics(duration_ms=duration_ms),
    )


def output_json(envelope: ResponseEnvelope) -> str:
    return orjson.dumps(envelope.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode()


def print_response(envelope: ResponseEnvelope) -> None:
    sys.stdout.write(output_json(envelope))
    sys.stdout.write("\n")


def exit_code_for(envelope: ResponseEnvelope) -> int:
    """Process exit status for *envelope*, classified by its first error code."""
    if envelope.ok:
        return EXIT_CODES["success"]
    if not envelope.errors:
        return EXIT_CODES["internal"]
    code = envelope.errors[0].code.upper()
    for matches, kind in _EXIT_CLASSES:
        if matches(code):
            return EXIT_CODES[kind]
    return EXIT_CODES["internal"]
