"""Value kinds and explicit coercions.

Formula values are plain Python objects drawn from a closed set:

* ``float`` (Number; ``int`` results are normalized to float)
* ``str`` (Text)
* ``bool`` (Boolean)
* ``datetime.datetime`` / ``datetime.date`` / ``datetime.time`` (DateTime)
* ``None`` (blank cell)

Errors are never values; they are raised as ``FormulaError`` subclasses.
"""

from __future__ import annotations

import datetime
import math
from typing import Any

from gridcalc.cell import ValueKind
from gridcalc.formulas.errors import TypeCoercionError

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%H:%M:%S",
    "%H:%M",
)

# Excel-compatible serial epoch: serial 1 = 1900-01-01.
_SERIAL_EPOCH = datetime.datetime(1899, 12, 30)


def kind_of(value: Any) -> ValueKind:
    """Classify a computed value."""
    if isinstance(value, bool):
        return ValueKind.boolean
    if isinstance(value, (int, float)):
        return ValueKind.number
    if isinstance(value, (datetime.date, datetime.time)):
        return ValueKind.datetime
    return ValueKind.text


def normalize(value: Any) -> Any:
    """Fold ``int`` into ``float`` so numbers have one representation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def to_number(value: Any, func_name: str | None = None) -> float:
    """Convert a value to a float.

    Numbers pass through, text is parsed, booleans map to 1.0/0.0 and
    blanks to 0.0.  Anything else raises ``TypeCoercionError``.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise TypeCoercionError(value, "number", func_name)
        try:
            return float(text)
        except ValueError:
            raise TypeCoercionError(value, "number", func_name) from None
    raise TypeCoercionError(value, "number", func_name)


def to_int(value: Any, func_name: str | None = None) -> int:
    """Convert to a number, then truncate toward zero."""
    num = to_number(value, func_name)
    if math.isnan(num) or math.isinf(num):
        raise TypeCoercionError(value, "integer", func_name)
    return int(num)


def format_number(num: float) -> str:
    """Render a float without a trailing ``.0`` for integral values."""
    if math.isnan(num):
        return "NaN"
    if math.isinf(num):
        return "Inf" if num > 0 else "-Inf"
    if num == int(num) and abs(num) < 1e16:
        return str(int(num))
    return f"{num:.10g}"


def to_text(value: Any) -> str:
    """Convert any value to its textual form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    if isinstance(value, datetime.datetime):
        if value.time() == datetime.time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M:%S")
    return str(value)


def to_bool(value: Any, func_name: str | None = None) -> bool:
    """Convert to a boolean.

    Numbers are true when non-zero; text must read TRUE or FALSE.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False
    raise TypeCoercionError(value, "boolean", func_name)


def parse_datetime(text: str) -> datetime.datetime | None:
    """Parse a date/time string in one of the accepted layouts, else None."""
    text = text.strip()
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def to_datetime(value: Any, func_name: str | None = None) -> datetime.datetime:
    """Convert to a ``datetime.datetime``.

    Accepts datetimes, dates, times (on 1900-01-01), date strings and
    serial day numbers.
    """
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime(value.year, value.month, value.day)
    if isinstance(value, datetime.time):
        return datetime.datetime.combine(datetime.date(1900, 1, 1), value)
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is not None:
            return parsed
        raise TypeCoercionError(value, "date", func_name)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 1:
            raise TypeCoercionError(value, "date", func_name)
        return _SERIAL_EPOCH + datetime.timedelta(days=float(value))
    raise TypeCoercionError(value, "date", func_name)


def parse_literal(raw: str) -> Any:
    """Interpret non-formula cell text as a typed value.

    Numbers become floats, TRUE/FALSE booleans, recognizable dates
    datetimes; everything else stays text.
    """
    text = raw.strip()
    upper = text.upper()
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    try:
        num = float(text)
    except ValueError:
        pass
    else:
        # float() also accepts "nan"/"inf"; keep those as text.
        if not math.isnan(num) and not math.isinf(num):
            return num
    if any(ch.isdigit() for ch in text):
        parsed = parse_datetime(text)
        if parsed is not None:
            return parsed
    return raw
