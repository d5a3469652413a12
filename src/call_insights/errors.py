from __future__ import annotations


class IngestionError(Exception):
    """Base class for failures surfaced by the ingestion pipeline."""

    kind = "ingestion"


class FetchError(IngestionError):
    """Transport failure or non-success status from a source."""

    kind = "fetch"

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedPayloadError(IngestionError):
    """The payload envelope or JSON body could not be located or parsed."""

    kind = "malformed_payload"


class SchemaViolationError(IngestionError):
    """The payload parsed but its tabular shape is structurally invalid."""

    kind = "schema_violation"
