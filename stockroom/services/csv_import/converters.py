"""Cell value transforms used when projecting rows onto target fields.

Each transform is a pure function of one raw (already trimmed) string. A
value that cannot be converted raises TransformError.
"""

import math
import re
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from stockroom.schemas.csv_import import TransformKind
from stockroom.services.csv_import.constants import (
    CURRENCY_SYMBOLS,
    DATE_FORMATS,
    FALSE_VALUES,
    LIST_SEPARATORS,
    STATUS_ALIASES,
    TRUE_VALUES,
)
from stockroom.services.csv_import.errors import TransformError

_THOUSANDS_RE = re.compile(r"^-?\d{1,3}(,\d{3})+(\.\d+)?$")


def _clean_numeric(value: str) -> str:
    cleaned = value.strip()
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")
    cleaned = cleaned.replace(" ", "").replace("_", "")
    if _THOUSANDS_RE.match(cleaned):
        cleaned = cleaned.replace(",", "")
    elif cleaned.count(",") == 1 and "." not in cleaned:
        # Decimal comma, e.g. "12,50"
        cleaned = cleaned.replace(",", ".")
    return cleaned


def to_string(value: str) -> str:
    return value.strip()


def to_number(value: str) -> float:
    """Convert a price-like string such as "$1,234.50" to a float."""
    cleaned = _clean_numeric(value)
    try:
        result = float(cleaned)
    except ValueError:
        raise TransformError(f"'{value}' is not a valid number", value=value) from None
    if not math.isfinite(result):
        raise TransformError(f"'{value}' is not a finite number", value=value)
    return result


def to_integer(value: str) -> int:
    """Convert a string to an int, accepting "1,000" and "10.0" but not "10.5"."""
    try:
        number = to_number(value)
    except TransformError:
        raise TransformError(f"'{value}' is not a valid whole number", value=value) from None
    if not number.is_integer():
        raise TransformError(f"'{value}' is not a whole number", value=value)
    return int(number)


def to_boolean(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise TransformError(f"'{value}' is not a valid yes/no value", value=value)


def to_date(value: str) -> date:
    """Parse a date in one of DATE_FORMATS."""
    stripped = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(stripped, fmt).date()
        except ValueError:
            continue
    raise TransformError(f"'{value}' is not a recognised date", value=value)


def to_enum(value: str) -> str:
    """Normalize an enumerated value, mapping known spelling variants.

    Unknown values are returned lower-cased so that an enum rule can report them.
    """
    lowered = value.strip().lower()
    return STATUS_ALIASES.get(lowered, lowered)


def to_list(value: str) -> list[str]:
    return [part.strip() for part in re.split(LIST_SEPARATORS, value) if part.strip()]


TRANSFORMS: dict[TransformKind, Callable[[str], Any]] = {
    TransformKind.STRING: to_string,
    TransformKind.INTEGER: to_integer,
    TransformKind.NUMBER: to_number,
    TransformKind.BOOLEAN: to_boolean,
    TransformKind.DATE: to_date,
    TransformKind.ENUM: to_enum,
    TransformKind.LIST: to_list,
}


def apply_transform(kind: TransformKind | None, value: str) -> Any:
    """Apply the transform for ``kind`` to ``value``; ``None`` means identity."""
    if kind is None:
        return value
    return TRANSFORMS[kind](value)
