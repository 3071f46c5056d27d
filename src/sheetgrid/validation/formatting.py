"""Per-column-type parsing, validation and display formatting.

Everything here is a pure function of its inputs. Validation never raises:
bad input comes back as ``ValidationOutcome(valid=False, error=...)`` and the
caller decides what to do with it.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, getcontext, localcontext
from typing import Any, Iterable
from urllib.parse import urlsplit

from babel.numbers import (
    format_currency,
    format_decimal,
    get_currency_precision,
    get_currency_symbol,
    get_decimal_symbol,
    get_group_symbol,
)
from dateutil import parser as date_parser

from sheetgrid.contracts.grid import (
    MAX_DECIMALS,
    ColumnFormat,
    ColumnType,
    RangeStats,
    Scalar,
    ValidationOutcome,
)

DEFAULT_LOCALE = "en_US"
DEFAULT_DECIMALS = 2
DEFAULT_CURRENCY = "USD"
DEFAULT_DATE_PATTERN = "MM/DD/YYYY"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BOOLEAN_WORDS = frozenset({"true", "false", "yes", "no", "1", "0"})
TRUE_WORDS = frozenset({"true", "yes", "1"})

_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")
_HOST_RE = re.compile(r"^[A-Za-z0-9\-._~%!$&'()*+,;=\[\]:]+$")
_YEAR_FIRST_RE = re.compile(r"^\d{4}\D")


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def scalar_text(value: Scalar | None) -> str:
    """Render a scalar the way it is shown when no formatting applies."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value == int(value) and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def is_empty(value: Scalar | None) -> bool:
    return value is None or value == ""


def parse_number(text: str) -> float | None:
    """Parse the leading numeric part of *text*; ``None`` when there is none."""
    m = _FLOAT_PREFIX_RE.match(text.strip())
    if not m:
        return None
    num = float(m.group(0))
    return num if math.isfinite(num) else None


def parse_locale_number(text: str, locale: str = DEFAULT_LOCALE) -> float | None:
    """Like :func:`parse_number`, reading group and decimal symbols for *locale*.

    ``"1.234,5"`` is 1234.5 under ``de_DE``; under ``en_US`` commas group.
    """
    plain = text.replace(get_group_symbol(locale), "")
    decimal_symbol = get_decimal_symbol(locale)
    if decimal_symbol != ".":
        plain = plain.replace(decimal_symbol, ".")
    return parse_number(plain)


def strip_currency(text: str, currency: str | None = None, locale: str = DEFAULT_LOCALE) -> str:
    """Remove ``$`` and the locale's symbol for *currency* from *text*."""
    text = text.replace("$", "")
    if currency:
        text = text.replace(get_currency_symbol(currency, locale), "")
    return text.strip()


def parse_date(text: str, dayfirst: bool = False) -> datetime | None:
    """Parse a date; *dayfirst* reads ``02/01/2024`` as 2 January.

    Year-first text is never read day-first.
    """
    dayfirst = dayfirst and not _YEAR_FIRST_RE.match(text.strip())
    try:
        return date_parser.parse(text, dayfirst=dayfirst)
    except (ValueError, OverflowError):
        return None


def is_absolute_url(text: str) -> bool:
    if not text or any(ch.isspace() for ch in text):
        return False
    try:
        parts = urlsplit(text)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if not parts.scheme or not parts.netloc:
        return False
    host = parts.netloc.rsplit("@", 1)[-1]
    return bool(host) and bool(_HOST_RE.match(host))


def has_scheme(text: str) -> bool:
    return bool(_SCHEME_RE.match(text))


def _wide_context(value: Decimal, places: int):
    """Decimal context holding every integer digit of *value* plus *places*.

    Babel quantizes under the current context, so its calls run inside this too.
    """
    ctx = getcontext().copy()
    ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
    return localcontext(ctx)


def _half_up(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def round_half_up(num: float, places: int) -> float:
    if not math.isfinite(num):
        return num
    value = Decimal(str(num))
    with _wide_context(value, places):
        return float(_half_up(value, places))


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------
def format_date(value: date, pattern: str | None = None) -> str:
    """Render a date as MM/DD/YYYY (default), DD/MM/YYYY or YYYY-MM-DD."""
    month = f"{value.month:02d}"
    day = f"{value.day:02d}"
    year = f"{value.year:04d}"
    if pattern == "DD/MM/YYYY":
        return f"{day}/{month}/{year}"
    if pattern == "YYYY-MM-DD":
        return f"{year}-{month}-{day}"
    return f"{month}/{day}/{year}"


def format_fixed(num: float, decimals: int, locale: str = DEFAULT_LOCALE) -> str:
    """Grouped thousands with exactly *decimals* fraction digits."""
    decimals = min(max(0, decimals), MAX_DECIMALS)
    pattern = "#,##0" + ("." + "0" * decimals if decimals else "")
    value = Decimal(str(num))
    with _wide_context(value, decimals):
        return format_decimal(_half_up(value, decimals), format=pattern, locale=locale)


def format_money(num: float, currency: str = DEFAULT_CURRENCY, locale: str = DEFAULT_LOCALE) -> str:
    places = get_currency_precision(currency)
    value = Decimal(str(num))
    with _wide_context(value, places):
        return format_currency(_half_up(value, places), currency, locale=locale)


def display_number(num: float, locale: str = DEFAULT_LOCALE) -> str:
    """Grouped thousands with up to two fraction digits (``1234.5 -> 1,234.5``)."""
    if isinstance(num, float) and not math.isfinite(num):
        return scalar_text(num)
    value = Decimal(str(num))
    with _wide_context(value, 2):
        return format_decimal(_half_up(value, 2), format="#,##0.##", locale=locale)


def format_calculated_value(num: float, locale: str = DEFAULT_LOCALE) -> str:
    return format_fixed(num, 2, locale)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def validate(
    value: Scalar | None,
    column_type: ColumnType | str,
    fmt: ColumnFormat | None = None,
    *,
    locale: str = DEFAULT_LOCALE,
) -> ValidationOutcome:
    """Validate *value* for a column type and produce its formatted form."""
    if is_empty(value):
        return ValidationOutcome(valid=True, formatted_value="")

    text = scalar_text(value).strip()
    fmt = fmt or ColumnFormat()
    try:
        ctype = ColumnType(column_type)
    except ValueError:
        return ValidationOutcome(valid=True, formatted_value=text)

    if ctype is ColumnType.TEXT:
        return ValidationOutcome(valid=True, formatted_value=text)

    if ctype is ColumnType.NUMBER:
        num = parse_locale_number(text, locale)
        if num is None:
            return ValidationOutcome(valid=False, error="Must be a valid number")
        decimals = fmt.decimals if fmt.decimals is not None else DEFAULT_DECIMALS
        return ValidationOutcome(valid=True, formatted_value=format_fixed(num, decimals, locale))

    if ctype is ColumnType.CURRENCY:
        currency = fmt.currency_code or DEFAULT_CURRENCY
        num = parse_locale_number(strip_currency(text, currency, locale), locale)
        if num is None:
            return ValidationOutcome(valid=False, error="Must be a valid currency amount")
        return ValidationOutcome(valid=True, formatted_value=format_money(num, currency, locale))

    if ctype is ColumnType.PERCENTAGE:
        num = parse_number(text.replace("%", ""))
        if num is None:
            return ValidationOutcome(valid=False, error="Must be a valid percentage")
        return ValidationOutcome(valid=True, formatted_value=f"{num:.1f}%")

    if ctype is ColumnType.DATE:
        pattern = fmt.date_pattern or DEFAULT_DATE_PATTERN
        parsed = parse_date(text, dayfirst=pattern == "DD/MM/YYYY")
        if parsed is None:
            return ValidationOutcome(valid=False, error="Must be a valid date")
        return ValidationOutcome(valid=True, formatted_value=format_date(parsed, pattern))

    if ctype is ColumnType.EMAIL:
        if not EMAIL_RE.match(text):
            return ValidationOutcome(valid=False, error="Must be a valid email address")
        return ValidationOutcome(valid=True, formatted_value=text.lower())

    if ctype is ColumnType.URL:
        candidate = text if has_scheme(text) else f"https://{text}"
        if not is_absolute_url(candidate):
            return ValidationOutcome(valid=False, error="Must be a valid URL")
        return ValidationOutcome(valid=True, formatted_value=text)

    # ColumnType.BOOLEAN
    word = text.lower()
    if word in BOOLEAN_WORDS:
        return ValidationOutcome(valid=True, formatted_value="Yes" if word in TRUE_WORDS else "No")
    return ValidationOutcome(valid=False, error="Must be Yes/No, True/False, or 1/0")


# ---------------------------------------------------------------------------
# Range statistics
# ---------------------------------------------------------------------------
def range_stats(values: Iterable[Any], locale: str = DEFAULT_LOCALE) -> RangeStats:
    """Sum/average over the values that read as numbers, rounded to cents."""
    numbers: list[float] = []
    for v in values:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            if math.isfinite(v):
                numbers.append(float(v))
            continue
        num = parse_locale_number(scalar_text(v), locale)
        if num is not None:
            numbers.append(num)

    total = sum(numbers)
    average = total / len(numbers) if numbers else 0.0
    return RangeStats(
        sum=round_half_up(total, 2),
        average=round_half_up(average, 2),
        numeric_count=len(numbers),
    )
