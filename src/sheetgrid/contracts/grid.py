"""Pydantic models for the dataset, cell overrides, positions and ranges."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

Scalar = Union[str, int, float]

TextAlign = Literal["left", "center", "right"]

DATE_PATTERNS = ("MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD")
MAX_DECIMALS = 100


class ColumnType(str, Enum):
    """Value type of a column; drives validation and formatting."""

    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    BOOLEAN = "boolean"


class ColumnFormat(BaseModel):
    """Optional per-column formatting hints."""

    decimals: int | None = None
    currency_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("currencyCode", "currency", "currency_code"),
        serialization_alias="currencyCode",
    )
    date_pattern: str | None = Field(
        default=None,
        validation_alias=AliasChoices("datePattern", "dateFormat", "date_pattern"),
        serialization_alias="datePattern",
    )

    @field_validator("decimals")
    @classmethod
    def _clamp_decimals(cls, v: int | None) -> int | None:
        return None if v is None else min(max(v, 0), MAX_DECIMALS)

    @field_validator("date_pattern")
    @classmethod
    def _known_pattern(cls, v: str | None) -> str | None:
        if v is not None and v not in DATE_PATTERNS:
            raise ValueError(f"Unknown date pattern '{v}'; expected one of {', '.join(DATE_PATTERNS)}")
        return v


class Column(BaseModel):
    """Column descriptor. Order within a dataset is display order."""

    key: str
    display_name: str = Field(
        default="",
        validation_alias=AliasChoices("displayName", "name", "display_name"),
        serialization_alias="displayName",
    )
    type: ColumnType = ColumnType.TEXT
    format: ColumnFormat | None = None


class Dataset(BaseModel):
    """Ordered columns plus ordered items keyed by column key."""

    columns: list[Column] = Field(default_factory=list)
    items: list[dict[str, Scalar]] = Field(default_factory=list)

    @field_validator("columns")
    @classmethod
    def _unique_keys(cls, columns: list[Column]) -> list[Column]:
        seen: set[str] = set()
        for col in columns:
            if col.key in seen:
                raise ValueError(f"Duplicate column key: '{col.key}'")
            seen.add(col.key)
        return columns

    @field_validator("items", mode="before")
    @classmethod
    def _blank_nulls(cls, items: Any) -> Any:
        if not isinstance(items, list):
            return items
        return [
            {k: ("" if v is None else v) for k, v in item.items()} if isinstance(item, dict) else item
            for item in items
        ]

    def column_keys(self) -> list[str]:
        return [c.key for c in self.columns]


class CellStyle(BaseModel):
    """Presentation attributes of a cell. Unset fields are ``None``."""

    bold: bool | None = None
    italic: bool | None = None
    text_align: TextAlign | None = Field(
        default=None,
        validation_alias=AliasChoices("textAlign", "text_align"),
        serialization_alias="textAlign",
    )
    background_color: str | None = Field(
        default=None,
        validation_alias=AliasChoices("backgroundColor", "background_color"),
        serialization_alias="backgroundColor",
    )

    def merged(self, patch: CellStyle) -> CellStyle:
        """Return a copy with every field named in *patch* overwritten."""
        return self.model_copy(update=patch.model_dump(exclude_none=True))

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class CellOverride(BaseModel):
    """User edits that shadow the base dataset at one position."""

    value: Scalar | None = None
    style: CellStyle | None = None
    formula: str | None = None

    def is_empty(self) -> bool:
        return self.value is None and self.style is None and self.formula is None


class CellPosition(BaseModel):
    """Zero-based row/column coordinate."""

    model_config = ConfigDict(frozen=True)

    row: int
    col: int

    def shifted(self, d_row: int, d_col: int) -> CellPosition:
        return CellPosition(row=self.row + d_row, col=self.col + d_col)


class CellRange(BaseModel):
    """Rectangle given by two corners in any order."""

    model_config = ConfigDict(frozen=True)

    start: CellPosition
    end: CellPosition

    def normalized(self) -> CellRange:
        """Reorder corners to (top-left, bottom-right)."""
        return CellRange(
            start=CellPosition(row=min(self.start.row, self.end.row), col=min(self.start.col, self.end.col)),
            end=CellPosition(row=max(self.start.row, self.end.row), col=max(self.start.col, self.end.col)),
        )

    def contains(self, pos: CellPosition) -> bool:
        n = self.normalized()
        return n.start.row <= pos.row <= n.end.row and n.start.col <= pos.col <= n.end.col

    def cells(self) -> Iterator[CellPosition]:
        """Yield every position in row-major order."""
        n = self.normalized()
        for row in range(n.start.row, n.end.row + 1):
            for col in range(n.start.col, n.end.col + 1):
                yield CellPosition(row=row, col=col)

    def shifted(self, d_row: int, d_col: int) -> CellRange:
        return CellRange(start=self.start.shifted(d_row, d_col), end=self.end.shifted(d_row, d_col))


class ValidationOutcome(BaseModel):
    """Result of validating one input against a column type."""

    valid: bool
    formatted_value: str | None = None
    error: str | None = None


class RangeStats(BaseModel):
    """Aggregate over the numeric values of a selection."""

    sum: float = 0
    average: float = 0
    numeric_count: int = 0
