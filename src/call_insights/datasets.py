from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EntityProfile:
    entity: str
    search_fields: tuple[str, ...]
    category_field: str | None
    export_columns: tuple[tuple[str, str], ...]
    range_defaults: tuple[tuple[str, float, float], ...] = ()


CLIENT_PROFILE = EntityProfile(
    entity="client",
    search_fields=("name", "phone", "location"),
    category_field="property_type",
    export_columns=(
        ("Name", "name"),
        ("Phone", "phone"),
        ("Location", "location"),
        ("Property Type", "property_type"),
        ("Budget", "budget"),
        ("Created At", "created_at"),
    ),
    range_defaults=(("budget", 0.0, 0.0),),
)

CALL_PROFILE = EntityProfile(
    entity="call",
    search_fields=("name", "caller_number", "recipient_number", "disconnection_reason"),
    category_field="disconnection_reason",
    export_columns=(
        ("Name", "name"),
        ("Caller Number", "caller_number"),
        ("Recipient Number", "recipient_number"),
        ("Duration", "duration_seconds"),
        ("Disconnection Reason", "disconnection_reason"),
        ("Tour Date", "tour_date"),
        ("Created At", "created_at"),
    ),
    range_defaults=(("duration_seconds", 0.0, 0.0),),
)

SEMANTIC_PROFILE = EntityProfile(
    entity="semantic",
    search_fields=(
        "client_name",
        "client_phone",
        "call_id",
        "predicted_outcome",
        "alert_status",
        "positive_indicators",
        "negative_indicators",
        "buying_signals",
    ),
    category_field="alert_status",
    export_columns=(
        ("Client Name", "client_name"),
        ("Client Phone", "client_phone"),
        ("Sentiment Score", "sentiment_score"),
        ("Agent Confidence", "agent_confidence"),
        ("Duration", "duration_seconds"),
        ("Alert Status", "alert_status"),
        ("Predicted Outcome", "predicted_outcome"),
        ("Positive Indicators", "positive_indicators"),
        ("Negative Indicators", "negative_indicators"),
        ("Buying Signals", "buying_signals"),
        ("Created At", "created_at"),
    ),
    range_defaults=(("sentiment_score", 0.0, 1.0), ("agent_confidence", 0.0, 10.0)),
)

CONVERSATION_PROFILE = EntityProfile(
    entity="conversation",
    search_fields=("speaker", "line"),
    category_field="speaker",
    export_columns=(("Speaker", "speaker"), ("Line", "line")),
)

PROFILES: dict[str, EntityProfile] = {
    profile.entity: profile
    for profile in (CLIENT_PROFILE, CALL_PROFILE, SEMANTIC_PROFILE, CONVERSATION_PROFILE)
}


def profile_for(entity: str) -> EntityProfile:
    try:
        return PROFILES[entity]
    except KeyError as exc:
        raise ValueError(f"Unknown entity: {entity}") from exc
