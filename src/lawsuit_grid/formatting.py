"""Default (pt-BR) display formatting for grid cells."""

import math
from datetime import date, datetime
from typing import Any

PLACEHOLDER = "-"
CURRENCY_SYMBOL = "R$"


def _group_thousands(integer_digits: str) -> str:
    """``"1234567"`` -> ``"1.234.567"``."""
    groups: list[str] = []
    while len(integer_digits) > 3:
        groups.insert(0, integer_digits[-3:])
        integer_digits = integer_digits[:-3]
    groups.insert(0, integer_digits)
    return ".".join(groups)


def _format_decimal(value: float, min_decimals: int, max_decimals: int) -> str:
    """Format a non-negative number with pt-BR separators."""
    text = f"{value:.{max_decimals}f}"
    integer_part, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) < min_decimals:
        fraction = fraction.ljust(min_decimals, "0")
    grouped = _group_thousands(integer_part)
    return f"{grouped},{fraction}" if fraction else grouped


def format_number(value: float | int) -> str:
    """``1234567.891`` -> ``"1.234.567,891"`` (at most 3 decimals)."""
    sign = "-" if value < 0 else ""
    return sign + _format_decimal(abs(value), 0, 3)


def format_currency(value: float | int) -> str:
    """``1234.5`` -> ``"R$ 1.234,50"``."""
    sign = "-" if value < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL} {_format_decimal(abs(value), 2, 2)}"


def format_date(value: Any) -> str:
    """Return ``dd/mm/yyyy`` for dates, datetimes and ISO-8601 strings.

    Strings that are not ISO-8601 are returned unchanged.
    """
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    text = str(value)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return text
    return parsed.strftime("%d/%m/%Y")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def format_cell_value(column_type: str, value: Any) -> str:
    """Format *value* for display according to *column_type*.

    ``None`` (and NaN) render as :data:`PLACEHOLDER` for every type.  Values
    that do not fit the column type fall back to ``str(value)``.
    """
    if _is_missing(value):
        return PLACEHOLDER

    if column_type in ("currency", "number"):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            try:
                value = float(value)
            except (TypeError, ValueError):
                return str(value)
            if _is_missing(value):
                return PLACEHOLDER
        if column_type == "currency":
            return format_currency(value)
        return format_number(value)

    if column_type == "boolean":
        return "Sim" if value else "Não"

    if column_type == "date":
        return format_date(value)

    return str(value)
