from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, TypeVar

from call_insights.models import field_value
from call_insights.preprocess.coerce import to_float

T = TypeVar("T")

ALL_CATEGORIES = "all"


@dataclass(frozen=True)
class RangeFilter:
    field: str
    low: float | None = None
    high: float | None = None
    default_low: float | None = None
    default_high: float | None = None

    @property
    def is_default(self) -> bool:
        low_default = self.low is None or self.low == self.default_low
        high_default = self.high is None or self.high == self.default_high
        return low_default and high_default

    def matches(self, record: Any) -> bool:
        if self.is_default:
            return True
        value = to_float(field_value(record, self.field))
        if value is None:
            return False
        if self.low is not None and value < self.low:
            return False
        if self.high is not None and value > self.high:
            return False
        return True


@dataclass(frozen=True)
class FilterState:
    search_term: str = ""
    category_field: str | None = None
    category: str = ALL_CATEGORIES
    ranges: tuple[RangeFilter, ...] = ()
    date_from: date | datetime | None = None
    date_to: date | datetime | None = None
    date_field: str = "created_at"


def _text_matches(value: Any, needle: str) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(_text_matches(item, needle) for item in value)
    return needle in str(value).casefold()


def matches_search(record: Any, term: str, search_fields: Sequence[str]) -> bool:
    needle = term.strip().casefold()
    if not needle:
        return True
    return any(_text_matches(field_value(record, name), needle) for name in search_fields)


def matches_category(record: Any, category_field: str | None, category: str) -> bool:
    if category_field is None or category == ALL_CATEGORIES:
        return True
    return field_value(record, category_field) == category


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lower_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _upper_bound(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return _as_utc(value)
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def matches_date_range(
    record: Any,
    date_from: date | datetime | None,
    date_to: date | datetime | None,
    date_field: str = "created_at",
) -> bool:
    if date_from is None and date_to is None:
        return True
    stamp = field_value(record, date_field)
    if not isinstance(stamp, datetime):
        return False
    stamp = _as_utc(stamp)
    if date_from is not None and stamp < _lower_bound(date_from):
        return False
    if date_to is not None and stamp > _upper_bound(date_to):
        return False
    return True


def record_matches(record: Any, state: FilterState, search_fields: Sequence[str]) -> bool:
    return (
        matches_search(record, state.search_term, search_fields)
        and matches_category(record, state.category_field, state.category)
        and all(range_filter.matches(record) for range_filter in state.ranges)
        and matches_date_range(record, state.date_from, state.date_to, state.date_field)
    )


def apply_filters(
    records: Sequence[T],
    state: FilterState,
    search_fields: Sequence[str],
) -> tuple[T, ...]:
    """Return the records passing every active filter, in input order."""
    return tuple(record for record in records if record_matches(record, state, search_fields))
