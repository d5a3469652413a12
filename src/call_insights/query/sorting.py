from __future__ import annotations

import locale
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from call_insights.models import field_value

T = TypeVar("T")


@dataclass(frozen=True)
class SortState:
    field: str | None = None
    descending: bool = False

    def toggle(self, field: str) -> "SortState":
        if self.field == field:
            return SortState(field=field, descending=not self.descending)
        return SortState(field=field, descending=False)


def _is_null(value: Any) -> bool:
    return value is None or value == "" or value == ()


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, datetime):
        return (1, value.timestamp())
    if isinstance(value, (list, tuple)):
        return (2, len(value))
    text = str(value).casefold()
    return (3, locale.strxfrm(text))


def sort_records(records: Sequence[T], sort: SortState) -> tuple[T, ...]:
    """Stable sort on one field; null values always follow non-null values."""
    if sort.field is None:
        return tuple(records)

    present: list[T] = []
    missing: list[T] = []
    for record in records:
        (missing if _is_null(field_value(record, sort.field)) else present).append(record)

    ordered = sorted(
        present,
        key=lambda record: _sort_key(field_value(record, sort.field)),
        reverse=sort.descending,
    )
    return tuple(ordered) + tuple(missing)
