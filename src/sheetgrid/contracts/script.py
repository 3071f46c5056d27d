"""Script spec models for ``sheetgrid run``."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class ScriptDefaults(BaseModel):
    stop_on_error: bool = False
    save: bool = True


class ScriptStep(BaseModel):
    id: str
    run: str
    args: dict[str, Any] = Field(default_factory=dict)

    @field_validator("run")
    @classmethod
    def validate_run_command(cls, v: str) -> str:
        from sheetgrid.engine.script import SCRIPT_COMMANDS

        if v not in SCRIPT_COMMANDS:
            raise ValueError(
                f"Unknown script step command: '{v}'. "
                f"Supported: {', '.join(sorted(SCRIPT_COMMANDS))}"
            )
        return v


class ScriptSpec(BaseModel):
    schema_version: str = "1.0"
    name: str = ""
    session: str | None = None
    defaults: ScriptDefaults = Field(default_factory=ScriptDefaults)
    steps: list[ScriptStep] = Field(default_factory=list)
