from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from call_insights.config import AppConfig, SourceConfig
from call_insights.errors import SchemaViolationError
from call_insights.models import (
    AlertStatus,
    CallRecord,
    ClientRecord,
    ConversationLine,
    Record,
    RecordId,
    SemanticAnalysisRecord,
)
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
)

LOGGER = logging.getLogger(__name__)

KEY_SEPARATOR_RE = re.compile(r"[\s\-]+")

FIELD_ALIASES: dict[str, dict[str, str]] = {
    "client": {
        "phone_number": "phone",
        "mobile": "phone",
        "property": "property_type",
        "timestamp": "created_at",
    },
    "call": {
        "duration": "call_duration",
        "conversation_duration": "call_duration",
        "dissconnection_reason": "disconnection_reason",
        "recording": "recording_url",
        "timestamp": "created_at",
    },
    "semantic": {
        "client_call_id": "call_id",
        "conversation_duration": "duration",
        "call_duration": "duration",
        "agent_talk_time_percentage": "agent_talk_time",
        "total_customer_words": "customer_word_count",
    },
    "conversation": {},
}


@dataclass(frozen=True)
class NormalizationContext:
    timezone: str = "UTC"
    list_delimiter: str = ";"
    default_alert_status: AlertStatus = AlertStatus.NORMAL
    talk_time_scale: str = "fraction"
    alert_status_aliases: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: AppConfig, source: SourceConfig) -> "NormalizationContext":
        return cls(
            timezone=config.time.timezone,
            list_delimiter=config.normalization.list_delimiter,
            default_alert_status=AlertStatus(config.normalization.default_alert_status),
            talk_time_scale=source.talk_time_scale,
            alert_status_aliases=dict(source.alert_status_aliases),
        )


def canonical_key(key: Any) -> str:
    return KEY_SEPARATOR_RE.sub("_", str(key).strip().lower())


def _canonical_row(row: Mapping[str, Any], entity: str) -> dict[str, Any]:
    aliases = FIELD_ALIASES.get(entity, {})
    canonical: dict[str, Any] = {}
    for key, value in row.items():
        name = canonical_key(key)
        name = aliases.get(name, name)
        existing = canonical.get(name)
        if name not in canonical or existing is None or existing == "":
            canonical[name] = value
    return canonical


def build_client(row: Mapping[str, Any], position: int, ctx: NormalizationContext) -> ClientRecord:
    return ClientRecord(
        id=to_identity(row.get("id"), position),
        name=to_text(row.get("name")),
        phone=to_text(row.get("phone")),
        location=to_text(row.get("location")),
        property_type=to_text(row.get("property_type")),
        budget=to_float(row.get("budget")),
        created_at=to_timestamp(row.get("created_at"), ctx.timezone),
    )


def build_call(row: Mapping[str, Any], position: int, ctx: NormalizationContext) -> CallRecord:
    return CallRecord(
        id=to_identity(row.get("id"), position),
        name=to_text(row.get("name")),
        caller_number=to_text(row.get("caller_number")),
        recipient_number=to_text(row.get("recipient_number")),
        duration_seconds=to_non_negative(row.get("call_duration")),
        recording_url=to_text(row.get("recording_url")),
        transcript=to_text(row.get("transcript")),
        tour_date=to_timestamp(row.get("tour_date"), ctx.timezone),
        disconnection_reason=to_text(row.get("disconnection_reason")),
        created_at=to_timestamp(row.get("created_at"), ctx.timezone),
    )


def build_semantic(
    row: Mapping[str, Any], position: int, ctx: NormalizationContext
) -> SemanticAnalysisRecord:
    return SemanticAnalysisRecord(
        id=to_identity(row.get("id"), position),
        call_id=to_text(row.get("call_id")),
        client_name=to_text(row.get("client_name")),
        client_phone=to_text(row.get("client_phone")),
        sentiment_score=to_float(row.get("sentiment_score")),
        agent_confidence=to_float(row.get("agent_confidence")),
        duration_seconds=to_non_negative(row.get("duration")),
        customer_word_count=to_count(row.get("customer_word_count")),
        agent_talk_time=to_fraction(row.get("agent_talk_time"), ctx.talk_time_scale),
        predicted_outcome=to_text(row.get("predicted_outcome")),
        alert_status=to_alert_status(
            row.get("alert_status"),
            default=ctx.default_alert_status,
            aliases=ctx.alert_status_aliases,
        ),
        positive_indicators=to_list(row.get("positive_indicators"), ctx.list_delimiter),
        negative_indicators=to_list(row.get("negative_indicators"), ctx.list_delimiter),
        buying_signals=to_list(row.get("buying_signals"), ctx.list_delimiter),
        finish_reason=to_text(row.get("finish_reason")),
        avg_logprobs=to_float(row.get("avg_logprobs")),
        created_at=to_timestamp(row.get("created_at"), ctx.timezone),
        updated_at=to_timestamp(row.get("updated_at"), ctx.timezone),
    )


def build_conversation_line(
    row: Mapping[str, Any], position: int, ctx: NormalizationContext
) -> ConversationLine:
    # Conversation sheets are positional: first column speaker, second column line.
    if "speaker" in row or "line" in row:
        speaker, line = row.get("speaker"), row.get("line")
    else:
        values = list(row.values())
        speaker = values[0] if values else None
        line = values[1] if len(values) > 1 else None
    return ConversationLine(id=position, speaker=to_text(speaker) or "", line=to_text(line) or "")


BUILDERS: dict[str, Callable[[Mapping[str, Any], int, NormalizationContext], Record]] = {
    "client": build_client,
    "call": build_call,
    "semantic": build_semantic,
    "conversation": build_conversation_line,
}


def normalize_rows(
    rows: Sequence[Mapping[str, Any]],
    entity: str,
    context: NormalizationContext | None = None,
) -> tuple[Record, ...]:
    """Coerce raw rows into typed records, keeping every structurally valid row."""
    if entity not in BUILDERS:
        raise ValueError(f"Unknown entity: {entity}")
    builder = BUILDERS[entity]
    ctx = context or NormalizationContext()

    records: list[Record] = []
    for position, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise SchemaViolationError(f"Row {position} is not a column mapping")
        records.append(builder(_canonical_row(row, entity), position, ctx))

    repeated = duplicate_identities(records)
    if repeated:
        LOGGER.warning(
            "%d %s identities repeat within one fetch result: %s",
            len(repeated),
            entity,
            ", ".join(str(identity) for identity in repeated[:5]),
        )
    LOGGER.debug("Normalized %d %s rows", len(records), entity)
    return tuple(records)


def duplicate_identities(records: Sequence[Record]) -> list[RecordId]:
    """Identities held by more than one record, in first-seen order.

    A provided id can equal the position assigned to a row that has none.
    """
    counts = Counter(record.id for record in records)
    return [identity for identity, count in counts.items() if count > 1]
