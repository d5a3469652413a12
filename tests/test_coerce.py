from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from call_insights.models import AlertStatus
from call_insights.preprocess.coerce import (
    to_alert_status,
    to_count,
    to_float,
    to_fraction,
    to_identity,
    to_list,
    to_non_negative,
    to_text,
    to_timestamp,
    unwrap_date_wrapper,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("500000", 500000.0),
        (" 12.5 ", 12.5),
        (7, 7.0),
        (Decimal("3.25"), 3.25),
        ("", None),
        ("n/a", None),
        (None, None),
        (float("nan"), None),
        ("inf", None),
        (True, None),
    ],
)
def test_to_float_degrades_to_none(raw: object, expected: float | None) -> None:
    assert to_float(raw) == expected


def test_numeric_helpers_reject_negative_and_fractional_counts() -> None:
    assert to_non_negative("-3") is None
    assert to_non_negative("0") == 0.0
    assert to_count("42") == 42
    assert to_count("42.5") is None
    assert to_count("-1") is None


def test_to_fraction_applies_explicit_scale() -> None:
    assert to_fraction("45", "percent") == pytest.approx(0.45)
    assert to_fraction("0.45", "fraction") == pytest.approx(0.45)
    assert to_fraction("", "percent") is None


def test_to_text_trims_and_renders_integral_floats() -> None:
    assert to_text("  Pune ") == "Pune"
    assert to_text("   ") is None
    assert to_text(9876543210.0) == "9876543210"


def test_to_list_splits_trims_and_never_returns_none() -> None:
    assert to_list("budget ok ; visit;; ") == ("budget ok", "visit")
    assert to_list("") == ()
    assert to_list(None) == ()
    assert to_list(["a", " b ", ""]) == ("a", "b")
    assert to_list("a|b", delimiter="|") == ("a", "b")


def test_unwrap_date_wrapper_uses_zero_based_month() -> None:
    assert unwrap_date_wrapper("Date(2024,0,15)") == "2024-01-15T00:00:00"
    assert unwrap_date_wrapper("Date(2024,11,31,23,5,9)") == "2024-12-31T23:05:09"
    assert unwrap_date_wrapper("2024-05-01") == "2024-05-01"


def test_to_timestamp_parses_wrappers_and_localizes_naive_values() -> None:
    assert to_timestamp("Date(2024,0,15)") == datetime(2024, 1, 15, tzinfo=timezone.utc)

    localized = to_timestamp("2024-01-15 10:00", timezone="Asia/Kolkata")
    assert localized == datetime(2024, 1, 15, 4, 30, tzinfo=timezone.utc)

    aware = to_timestamp("2024-01-15T10:00:00+02:00")
    assert aware == datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)

    native = to_timestamp(datetime(2024, 3, 1, 9, 0))
    assert native == datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw", ["", "not a date", "Date(2024,13,40)", None, 12345, "now", " Today "]
)
def test_to_timestamp_returns_none_for_unparseable_values(raw: object) -> None:
    assert to_timestamp(raw) is None


def test_to_alert_status_maps_source_vocabularies() -> None:
    assert to_alert_status("High") is AlertStatus.CRITICAL
    assert to_alert_status("medium") is AlertStatus.WARNING
    assert to_alert_status("low") is AlertStatus.NORMAL
    assert to_alert_status("critical") is AlertStatus.CRITICAL
    assert to_alert_status("") is AlertStatus.NORMAL
    assert to_alert_status("mystery", default=AlertStatus.WARNING) is AlertStatus.WARNING
    assert to_alert_status("urgent", aliases={"Urgent": "critical"}) is AlertStatus.CRITICAL


def test_to_identity_prefers_provided_ids() -> None:
    assert to_identity("abc-1", 3) == "abc-1"
    assert to_identity(12.0, 3) == 12
    assert to_identity(5, 3) == 5
    assert to_identity("", 3) == 3
    assert to_identity(None, 0) == 0
