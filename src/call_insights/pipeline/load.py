from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from call_insights.config import AppConfig, SourceConfig
from call_insights.errors import FetchError, IngestionError, SchemaViolationError
from call_insights.io.fetch import endpoint_for_source, fetch_text
from call_insights.io.parse import ParseStrategy, parse_payload
from call_insights.io.relational import query_for_source, select_rows
from call_insights.models import Record
from call_insights.preprocess.normalize import NormalizationContext, normalize_rows
from call_insights.query.sorting import SortState, sort_records

LOGGER = logging.getLogger(__name__)

STRATEGY_BY_KIND: dict[str, ParseStrategy] = {
    "jsonp_table": ParseStrategy.JSONP_TABLE,
    "csv_export": ParseStrategy.DELIMITED_TEXT,
    "relational": ParseStrategy.STRUCTURED_JSON,
}
NEWEST_FIRST = SortState(field="created_at", descending=True)


@dataclass(frozen=True)
class FetchResult:
    dataset: str
    entity: str
    records: tuple[Record, ...] = ()
    error: IngestionError | None = None
    generation: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def fetch_payload(source: SourceConfig, config: AppConfig) -> Any:
    if source.kind == "relational":
        return select_rows(source.db_url, query_for_source(source))
    return fetch_text(
        endpoint_for_source(source),
        timeout=config.fetch.timeout_seconds,
        user_agent=config.fetch.user_agent,
    )


def load_dataset(dataset: str, config: AppConfig) -> tuple[Record, ...]:
    """Fetch, parse and normalize one dataset; raises only IngestionError subclasses."""
    source = config.source(dataset)
    try:
        payload = fetch_payload(source, config)
    except IngestionError:
        raise
    except (ValueError, TypeError, KeyError, RuntimeError, OSError) as exc:
        raise FetchError(f"Dataset '{dataset}' could not be fetched: {exc}") from exc

    try:
        rows = parse_payload(payload, STRATEGY_BY_KIND[source.kind])
        records = normalize_rows(
            rows,
            source.entity,
            NormalizationContext.from_config(config, source),
        )
    except IngestionError:
        raise
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        raise SchemaViolationError(f"Dataset '{dataset}' has an invalid shape: {exc}") from exc

    if source.sort_newest_first:
        records = sort_records(records, NEWEST_FIRST)
    LOGGER.info("Loaded %d %s records for dataset %s", len(records), source.entity, dataset)
    return records


def load_result(dataset: str, config: AppConfig, generation: int = 0) -> FetchResult:
    entity = config.source(dataset).entity
    try:
        records = load_dataset(dataset, config)
    except IngestionError as exc:
        LOGGER.warning("Dataset %s failed to load (%s): %s", dataset, exc.kind, exc)
        return FetchResult(dataset=dataset, entity=entity, error=exc, generation=generation)
    return FetchResult(dataset=dataset, entity=entity, records=records, generation=generation)
