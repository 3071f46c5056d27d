"""Pydantic models for the grid, operations, responses and scripts."""

from sheetgrid.contracts.common import (
    ChangeRecord,
    ErrorDetail,
    HistoryInfo,
    Metrics,
    ResponseEnvelope,
    SessionCorruptError,
    Target,
    WarningDetail,
)
from sheetgrid.contracts.grid import (
    CellOverride,
    CellPosition,
    CellRange,
    CellStyle,
    Column,
    ColumnFormat,
    ColumnType,
    Dataset,
    RangeStats,
    ValidationOutcome,
)
from sheetgrid.contracts.operations import Operation, parse_operation
from sheetgrid.contracts.script import ScriptSpec, ScriptStep

__all__ = [
    "CellOverride",
    "CellPosition",
    "CellRange",
    "CellStyle",
    "ChangeRecord",
    "Column",
    "ColumnFormat",
    "ColumnType",
    "Dataset",
    "ErrorDetail",
    "HistoryInfo",
    "Metrics",
    "Operation",
    "RangeStats",
    "ResponseEnvelope",
    "ScriptSpec",
    "ScriptStep",
    "SessionCorruptError",
    "Target",
    "ValidationOutcome",
    "WarningDetail",
    "parse_operation",
]
