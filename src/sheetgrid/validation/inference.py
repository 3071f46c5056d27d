"""Heuristic column-type inference from raw sample values."""

from __future__ import annotations

import math
import re
from typing import Callable, Sequence

from sheetgrid.contracts.grid import ColumnType, Scalar
from sheetgrid.validation.formatting import (
    BOOLEAN_WORDS,
    EMAIL_RE,
    is_absolute_url,
    is_empty,
    parse_date,
    scalar_text,
)

MATCH_THRESHOLD = 0.7

_CURRENCY_RE = re.compile(r"^\$[\d,]+\.?\d*$")
_PURE_NUMERIC_RE = re.compile(r"^\d+\.?\d*$")
_TLD_RE = re.compile(r"\.[a-z]{2,}$", re.IGNORECASE)


def _looks_currency(text: str) -> bool:
    return bool(_CURRENCY_RE.match(text))


def _looks_percentage(text: str) -> bool:
    return "%" in text


def _is_plain_number(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    try:
        num = float(stripped)
    except ValueError:
        return False
    return not math.isnan(num)


def _looks_date(text: str) -> bool:
    if _PURE_NUMERIC_RE.match(text):
        return False
    return len(text) > 4 and parse_date(text) is not None


def _looks_email(text: str) -> bool:
    return bool(EMAIL_RE.match(text))


def _looks_url(text: str) -> bool:
    if text.startswith(("http://", "https://")):
        return is_absolute_url(text)
    if "." in text and _TLD_RE.search(text):
        return is_absolute_url(f"https://{text}")
    return False


def _looks_boolean(text: str) -> bool:
    return text.lower() in BOOLEAN_WORDS


# Evaluated in order; the first category whose share of matching samples
# exceeds MATCH_THRESHOLD wins. ``number`` is handled separately because it
# requires every sample to match.
_CATEGORIES: list[tuple[ColumnType, Callable[[str], bool]]] = [
    (ColumnType.CURRENCY, _looks_currency),
    (ColumnType.PERCENTAGE, _looks_percentage),
    (ColumnType.NUMBER, _is_plain_number),
    (ColumnType.DATE, _looks_date),
    (ColumnType.EMAIL, _looks_email),
    (ColumnType.URL, _looks_url),
    (ColumnType.BOOLEAN, _looks_boolean),
]


def infer_column_type(values: Sequence[Scalar | None]) -> ColumnType:
    """Guess the column type of *values*; ``text`` when nothing fits."""
    samples = [scalar_text(v) for v in values if not is_empty(v)]
    if not samples:
        return ColumnType.TEXT

    for ctype, matcher in _CATEGORIES:
        hits = sum(1 for s in samples if matcher(s))
        if ctype is ColumnType.NUMBER:
            if hits == len(samples):
                return ctype
        elif hits > len(samples) * MATCH_THRESHOLD:
            return ctype
    return ColumnType.TEXT
