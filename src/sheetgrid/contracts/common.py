"""Envelope models shared by the CLI, the stdio server and scripts."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SessionCorruptError(Exception):
    """A session or dataset file exists but cannot be parsed."""


class Target(BaseModel):
    """What a command acted on: the session file plus an optional cell ref or column."""

    file: str | None = None
    ref: str | None = None
    column: str | None = None


class _Issue(BaseModel):
    code: str
    message: str


class WarningDetail(_Issue):
    """Non-fatal problem. ``path`` is the A1 ref (or refs) it concerns."""

    path: str | None = None


class ErrorDetail(_Issue):
    details: dict[str, Any] | None = None


class Metrics(BaseModel):
    duration_ms: int = 0


class HistoryInfo(BaseModel):
    """Undo/redo cursor after a command ran."""

    index: int = -1
    length: int = 0
    can_undo: bool = False
    can_redo: bool = False


class ChangeRecord(BaseModel):
    """One committed grid operation, with before/after values where they apply."""

    op_id: str | None = None
    type: str
    target: str
    before: Any | None = None
    after: Any | None = None
    impact: dict[str, Any] | None = None
    warnings: list[WarningDetail] = Field(default_factory=list)


class ResponseEnvelope(BaseModel):
    """JSON document every command prints, successful or not."""

    ok: bool = True
    command: str = ""
    target: Target = Field(default_factory=Target)
    result: Any = None
    changes: list[ChangeRecord] = Field(default_factory=list)
    warnings: list[WarningDetail] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)
    history: HistoryInfo | None = None
