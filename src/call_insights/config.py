from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

JSONP_URL_TEMPLATE = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq?tqx=out:json&sheet={sheet_name}"
)
CSV_EXPORT_URL_TEMPLATE = (
    "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv&gid={gid}"
)

EntityName = Literal["client", "call", "semantic", "conversation"]
AlertStatusName = Literal["critical", "warning", "normal"]
SourceKind = Literal["jsonp_table", "csv_export", "relational"]


class SourceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    entity: EntityName
    kind: SourceKind
    url_template: str | None = None
    sheet_id: str | None = None
    sheet_name: str = "Sheet1"
    gid: int = Field(default=0, ge=0)
    db_url: str | None = None
    table: str | None = None
    columns: list[str] | None = None
    not_null: str | None = None
    order_by: str | None = None
    descending: bool = False
    talk_time_scale: Literal["fraction", "percent"] = "fraction"
    sort_newest_first: bool = False
    alert_status_aliases: dict[str, AlertStatusName] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_location(self) -> "SourceConfig":
        if self.kind == "relational":
            if not self.table:
                raise ValueError("relational sources require 'table'")
        elif not self.sheet_id and not self.url_template:
            raise ValueError(f"{self.kind} sources require 'sheet_id' or 'url_template'")
        return self

    def resolved_url_template(self) -> str:
        if self.url_template:
            return self.url_template
        if self.kind == "jsonp_table":
            return JSONP_URL_TEMPLATE
        return CSV_EXPORT_URL_TEMPLATE


class FetchConfig(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    user_agent: str = "call-insights/0.1"


class TimeConfig(BaseModel):
    timezone: str = "UTC"


class NormalizationConfig(BaseModel):
    list_delimiter: str = Field(default=";", min_length=1)
    default_alert_status: AlertStatusName = "normal"


class ExportConfig(BaseModel):
    out_dir: str = "exports"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sources: dict[str, SourceConfig] = Field(default_factory=dict)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    time: TimeConfig = Field(default_factory=TimeConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    def source(self, dataset: str) -> SourceConfig:
        try:
            return self.sources[dataset]
        except KeyError as exc:
            known = ", ".join(sorted(self.sources)) or "<none>"
            raise ValueError(f"Unknown dataset '{dataset}'. Configured: {known}") from exc


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _resolve_optional_path(path_value: str | None, base_dir: Path) -> str | None:
    if not path_value:
        return None
    candidate = Path(path_value)
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    base_dir = path.resolve().parent

    config.export.out_dir = _resolve_optional_path(config.export.out_dir, base_dir) or "exports"
    env_db_url = os.getenv("CALL_INSIGHTS_DB_URL") or os.getenv("DATABASE_URL")
    for source in config.sources.values():
        if source.kind == "relational":
            source.db_url = source.db_url or env_db_url
    return config
