from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import pandas as pd

from call_insights.models import ALERT_STATUS_ALIASES, AlertStatus, RecordId

DATE_WRAPPER_RE = re.compile(r"^\s*(?:new\s+)?Date\(([^)]*)\)\s*$")
# pandas resolves "now" and "today" against the clock; such cells are not dates.
RELATIVE_DATE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        number = pd.to_numeric(text, errors="coerce")
        if pd.isna(number):
            return None
        number = float(number)
    return number if math.isfinite(number) else None


def to_non_negative(value: Any) -> float | None:
    number = to_float(value)
    if number is None or number < 0:
        return None
    return number


def to_count(value: Any) -> int | None:
    number = to_non_negative(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def to_fraction(value: Any, scale: str = "fraction") -> float | None:
    number = to_float(value)
    if number is None:
        return None
    if scale == "percent":
        return number / 100.0
    return number


def to_list(value: Any, delimiter: str = ";") -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        items: Iterable[Any] = value
    else:
        text = to_text(value)
        if text is None:
            return ()
        items = text.split(delimiter)
    return tuple(segment for segment in (to_text(item) for item in items) if segment)


def unwrap_date_wrapper(value: str) -> str:
    """Turn the spreadsheet `Date(y,m,d[,h,mi,s])` wrapper into an ISO string.

    The wrapper uses a zero-based month. Values without the wrapper are returned
    unchanged.
    """
    match = DATE_WRAPPER_RE.match(value)
    if match is None:
        return value
    parts = [part.strip() for part in match.group(1).split(",") if part.strip()]
    try:
        numbers = [int(float(part)) for part in parts]
    except ValueError:
        return value
    if len(numbers) < 3:
        return value
    numbers[1] += 1
    numbers.extend([0] * (6 - len(numbers)))
    year, month, day, hour, minute, second = numbers[:6]
    return f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:{second:02d}"


def to_timestamp(value: Any, timezone: str = "UTC") -> datetime | None:
    if value is None or isinstance(value, (bool, int, float, Decimal)):
        return None
    if isinstance(value, (datetime, date)):
        parsed = pd.Timestamp(value)
    else:
        text = str(value).strip()
        if not text or text.lower() in RELATIVE_DATE_WORDS:
            return None
        try:
            parsed = pd.Timestamp(unwrap_date_wrapper(text))
        except (ValueError, TypeError, OverflowError):
            return None

    if pd.isna(parsed):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.tz_localize(timezone, nonexistent="shift_forward", ambiguous="NaT")
        if pd.isna(parsed):
            return None
    return parsed.tz_convert("UTC").to_pydatetime()


def to_alert_status(
    value: Any,
    default: AlertStatus = AlertStatus.NORMAL,
    aliases: dict[str, str] | None = None,
) -> AlertStatus:
    text = to_text(value)
    if text is None:
        return default
    lookup = dict(ALERT_STATUS_ALIASES)
    for alias, canonical in (aliases or {}).items():
        lookup[alias.strip().lower()] = AlertStatus(canonical)
    return lookup.get(text.lower(), default)


def to_identity(value: Any, position: int) -> RecordId:
    if isinstance(value, bool):
        return position
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return position if not math.isfinite(value) else str(value)
    text = to_text(value)
    return text if text is not None else position
