from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Union

RecordId = Union[int, str]


class AlertStatus(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


# Each source vocabulary maps onto the canonical variant here, never at render time.
ALERT_STATUS_ALIASES: dict[str, AlertStatus] = {
    "critical": AlertStatus.CRITICAL,
    "high": AlertStatus.CRITICAL,
    "warning": AlertStatus.WARNING,
    "medium": AlertStatus.WARNING,
    "normal": AlertStatus.NORMAL,
    "low": AlertStatus.NORMAL,
}


@dataclass(frozen=True)
class ClientRecord:
    id: RecordId
    name: str | None
    phone: str | None
    location: str | None = None
    property_type: str | None = None
    budget: float | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class CallRecord:
    id: RecordId
    name: str | None = None
    caller_number: str | None = None
    recipient_number: str | None = None
    duration_seconds: float | None = None
    recording_url: str | None = None
    transcript: str | None = None
    tour_date: datetime | None = None
    disconnection_reason: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class SemanticAnalysisRecord:
    id: RecordId
    call_id: str | None = None
    client_name: str | None = None
    client_phone: str | None = None
    sentiment_score: float | None = None
    agent_confidence: float | None = None
    duration_seconds: float | None = None
    customer_word_count: int | None = None
    agent_talk_time: float | None = None
    predicted_outcome: str | None = None
    alert_status: AlertStatus = AlertStatus.NORMAL
    positive_indicators: tuple[str, ...] = ()
    negative_indicators: tuple[str, ...] = ()
    buying_signals: tuple[str, ...] = ()
    finish_reason: str | None = None
    avg_logprobs: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ConversationLine:
    id: RecordId
    speaker: str
    line: str


Record = Union[ClientRecord, CallRecord, SemanticAnalysisRecord, ConversationLine]


def record_fields(record_type: type) -> list[str]:
    return [item.name for item in fields(record_type)]


def field_value(record: Any, field_name: str) -> Any:
    value = getattr(record, field_name, None)
    if isinstance(value, AlertStatus):
        return value.value
    return value
