from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from call_insights.models import AlertStatus, field_value

ALERTING_STATUSES = frozenset({AlertStatus.CRITICAL.value, AlertStatus.WARNING.value})
POSITIVE_SENTIMENT_THRESHOLD = 0.6
TOP_LOCATIONS = 10


@dataclass(frozen=True)
class StatSummary:
    metrics: dict[str, float | int]
    rankings: dict[str, list[tuple[str, int]]] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(list(self.metrics.items()), columns=["metric", "value"])


def _is_null(value: Any) -> bool:
    return value is None or value == ""


def _numeric_values(records: Sequence[Any], field_name: str) -> pd.Series:
    raw = pd.Series([field_value(record, field_name) for record in records], dtype="object")
    return pd.to_numeric(raw, errors="coerce").dropna()


def count_records(records: Sequence[Any]) -> int:
    return len(records)


def mean_of(records: Sequence[Any], field_name: str) -> float:
    values = _numeric_values(records, field_name)
    if values.empty:
        return 0.0
    return float(values.mean())


def max_of(records: Sequence[Any], field_name: str) -> float:
    values = _numeric_values(records, field_name)
    if values.empty:
        return 0.0
    return float(values.max())


def sum_of(records: Sequence[Any], field_name: str) -> float:
    return float(_numeric_values(records, field_name).sum())


def field_bounds(
    records: Sequence[Any],
    field_name: str,
    default: tuple[float, float] = (0.0, 1.0),
) -> tuple[float, float]:
    values = _numeric_values(records, field_name)
    if values.empty:
        return default
    return float(values.min()), float(values.max())


def count_distinct(records: Sequence[Any], field_name: str) -> int:
    values = [field_value(record, field_name) for record in records]
    return int(pd.Series([value for value in values if not _is_null(value)], dtype="object").nunique())


def count_matching(records: Sequence[Any], predicate: Callable[[Any], bool]) -> int:
    return sum(1 for record in records if predicate(record))


def top_n(records: Sequence[Any], field_name: str, n: int | None = None) -> list[tuple[str, int]]:
    """Rank values by frequency; ties keep the order in which values first appear."""
    values = [field_value(record, field_name) for record in records]
    present = pd.Series([value for value in values if not _is_null(value)], dtype="object")
    if present.empty:
        return []
    counts = present.groupby(present, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="mergesort")
    if n is not None:
        counts = counts.head(n)
    return [(str(key), int(count)) for key, count in counts.items()]


def sum_list_lengths(records: Sequence[Any], field_name: str) -> int:
    return sum(len(field_value(record, field_name) or ()) for record in records)


def summarize_clients(records: Sequence[Any], view: Sequence[Any] | None = None) -> StatSummary:
    metrics: dict[str, float | int] = {
        "total": count_records(records),
        "locations": count_distinct(records, "location"),
        "avg_budget": mean_of(records, "budget"),
        "max_budget": max_of(records, "budget"),
    }
    if view is not None:
        metrics["filtered"] = count_records(view)
    return StatSummary(
        metrics=metrics,
        rankings={
            "property_types": top_n(records, "property_type"),
            "locations": top_n(records, "location", TOP_LOCATIONS),
        },
    )


def summarize_calls(records: Sequence[Any], view: Sequence[Any] | None = None) -> StatSummary:
    metrics: dict[str, float | int] = {
        "total_calls": count_records(records),
        "total_duration": sum_of(records, "duration_seconds"),
        "avg_duration": mean_of(records, "duration_seconds"),
        "scheduled_tours": count_matching(
            records, lambda record: field_value(record, "tour_date") is not None
        ),
    }
    if view is not None:
        metrics["filtered"] = count_records(view)
    return StatSummary(
        metrics=metrics,
        rankings={"disconnection_reasons": top_n(records, "disconnection_reason")},
    )


def _is_positive(record: Any) -> bool:
    score = field_value(record, "sentiment_score")
    return score is not None and score > POSITIVE_SENTIMENT_THRESHOLD


def summarize_semantic(records: Sequence[Any], view: Sequence[Any] | None = None) -> StatSummary:
    metrics: dict[str, float | int] = {
        "total": count_records(records),
        "avg_sentiment": mean_of(records, "sentiment_score"),
        "avg_confidence": mean_of(records, "agent_confidence"),
        "avg_duration": mean_of(records, "duration_seconds"),
        "alert_count": count_matching(
            records, lambda record: field_value(record, "alert_status") in ALERTING_STATUSES
        ),
        "positive_calls": count_matching(records, _is_positive),
        "buying_signals_total": sum_list_lengths(records, "buying_signals"),
    }
    if view is not None:
        metrics["filtered"] = count_records(view)
    return StatSummary(
        metrics=metrics,
        rankings={
            "predicted_outcomes": top_n(records, "predicted_outcome"),
            "alert_statuses": top_n(records, "alert_status"),
        },
    )


def summarize_conversation(
    records: Sequence[Any], view: Sequence[Any] | None = None
) -> StatSummary:
    metrics: dict[str, float | int] = {
        "lines": count_records(records),
        "speakers": count_distinct(records, "speaker"),
    }
    if view is not None:
        metrics["filtered"] = count_records(view)
    return StatSummary(metrics=metrics, rankings={"speakers": top_n(records, "speaker")})


SUMMARIZERS: dict[str, Callable[..., StatSummary]] = {
    "client": summarize_clients,
    "call": summarize_calls,
    "semantic": summarize_semantic,
    "conversation": summarize_conversation,
}


def summarize(entity: str, records: Sequence[Any], view: Sequence[Any] | None = None) -> StatSummary:
    if entity not in SUMMARIZERS:
        raise ValueError(f"Unknown entity: {entity}")
    return SUMMARIZERS[entity](records, view=view)
