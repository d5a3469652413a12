from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd

from call_insights.features.aggregates import StatSummary
from call_insights.models import field_value

CSV_MIME_TYPE = "text/csv"
LIST_JOINER = "; "

ExportColumns = Sequence[tuple[str, str]]


def render_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return LIST_JOINER.join(render_cell(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def export_frame(records: Sequence[Any], columns: ExportColumns) -> pd.DataFrame:
    headers = [header for header, _field in columns]
    rows = [
        [render_cell(field_value(record, field_name)) for _header, field_name in columns]
        for record in records
    ]
    return pd.DataFrame(rows, columns=headers, dtype="object")


def export_csv(records: Sequence[Any], columns: ExportColumns) -> bytes:
    """Render records as fully quoted CSV bytes with a fixed header row."""
    frame = export_frame(records, columns)
    text = frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n", na_rep="")
    return text.encode("utf-8")


def export_filename(dataset: str, day: date | None = None) -> str:
    return f"{dataset}-{(day or date.today()).isoformat()}.csv"


def write_export(
    records: Sequence[Any],
    columns: ExportColumns,
    out_dir: Path,
    dataset: str,
    day: date | None = None,
) -> Path:
    path = out_dir / export_filename(dataset, day)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(export_csv(records, columns))
    return path


def write_summary(summary: StatSummary, path: Path) -> Path:
    data = {
        "metrics": summary.metrics,
        "rankings": {name: [list(item) for item in items] for name, items in summary.rankings.items()},
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    return path
