from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from call_insights.errors import FetchError, MalformedPayloadError, SchemaViolationError

RawRow = dict[str, Any]

WHITESPACE_RE = re.compile(r"\s+")
LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")
# String literals match first so only keys outside of them get quoted.
BARE_KEY_RE = re.compile(r'"(?:[^"\\]|\\.)*"|([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)')


class ParseStrategy(str, Enum):
    JSONP_TABLE = "jsonp_table"
    DELIMITED_TEXT = "delimited_text"
    STRUCTURED_JSON = "structured_json"


def normalize_label(label: str) -> str:
    return WHITESPACE_RE.sub("_", str(label).strip().lower())


def _extract_envelope(text: str) -> str:
    start = text.find("(")
    end = text.rfind(")")
    if start < 0 or end <= start:
        raise MalformedPayloadError("Could not locate JSONP envelope in response body")
    return text[start + 1 : end]


def _quote_bare_key(match: re.Match[str]) -> str:
    if match.group(1) is None:
        return match.group(0)
    return f'{match.group(1)}"{match.group(2)}"{match.group(3)}'


def _loads_lenient(body: str) -> Any:
    try:
        return json.loads(body)
    except json.JSONDecodeError as first_error:
        quoted = BARE_KEY_RE.sub(_quote_bare_key, body)
        try:
            return json.loads(quoted)
        except json.JSONDecodeError:
            raise MalformedPayloadError(
                f"JSONP body is not valid JSON: {first_error.msg}"
            ) from first_error


def _column_keys(cols: Sequence[Any]) -> list[str]:
    keys: list[str] = []
    for index, col in enumerate(cols):
        col_map = col if isinstance(col, Mapping) else {}
        label = str(col_map.get("label") or "").strip() or str(col_map.get("id") or "").strip()
        keys.append(normalize_label(label) if label else f"column_{index}")
    return keys


def parse_jsonp_table(text: str) -> list[RawRow]:
    payload = _loads_lenient(_extract_envelope(text))
    if not isinstance(payload, Mapping) or not isinstance(payload.get("table"), Mapping):
        raise SchemaViolationError("JSONP payload has no table description")

    table = payload["table"]
    cols = table.get("cols")
    rows = table.get("rows")
    if not isinstance(cols, list) or not isinstance(rows, list):
        raise SchemaViolationError("JSONP table must contain 'cols' and 'rows' lists")
    if not cols and rows:
        raise SchemaViolationError("JSONP table has rows but zero columns")

    keys = _column_keys(cols)
    parsed: list[RawRow] = []
    for row in rows:
        cells = row.get("c") if isinstance(row, Mapping) else None
        cells = cells if isinstance(cells, list) else []
        record: RawRow = {}
        for index, key in enumerate(keys):
            cell = cells[index] if index < len(cells) else None
            record[key] = cell.get("v") if isinstance(cell, Mapping) else None
        parsed.append(record)
    return parsed


def _clean_field(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1].replace('""', '"')
    else:
        text = text.strip('"')
    return text.strip()


def _scan_fields(line: str, inside: bool = False) -> tuple[list[str], bool]:
    """Split a line on field commas and report whether a quoted field is still open.

    A quote opens a quoted field only at the start of a field; anywhere else it
    is literal text. Inside a quoted field, a doubled quote is an escaped quote.
    """
    fields: list[str] = []
    start = 0
    field_start = not inside
    index = 0
    while index < len(line):
        char = line[index]
        if inside:
            if char == '"':
                if line.startswith('"', index + 1):
                    index += 1
                else:
                    inside = False
        elif char == ",":
            fields.append(line[start:index])
            start = index + 1
            field_start = True
        elif char == '"' and field_start:
            inside = True
            field_start = False
        elif not char.isspace():
            field_start = False
        index += 1
    fields.append(line[start:])
    return fields, inside


def split_delimited_line(line: str) -> list[str]:
    fields, _inside = _scan_fields(line)
    return [_clean_field(field) for field in fields]


def _logical_lines(text: str) -> list[str]:
    lines: list[str] = []
    pending: str | None = None
    inside = False
    for physical in LINE_BREAK_RE.split(text):
        _fields, inside = _scan_fields(physical, inside)
        current = physical if pending is None else f"{pending}\n{physical}"
        if inside:
            pending = current
            continue
        pending = None
        lines.append(current)
    if pending is not None:
        lines.append(pending)
    return lines


def parse_delimited_text(text: str) -> list[RawRow]:
    lines = [line for line in _logical_lines(text) if line.strip()]
    if not lines:
        return []

    headers = split_delimited_line(lines[0])
    if not any(headers):
        raise SchemaViolationError("Header row present but contains zero columns")

    parsed: list[RawRow] = []
    for line in lines[1:]:
        values = split_delimited_line(line)
        record: RawRow = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            record[header] = values[index] if index < len(values) else ""
        parsed.append(record)
    return parsed


def _raise_for_error_object(payload: Mapping[str, Any]) -> None:
    error = payload.get("error") or payload.get("message")
    if error:
        if isinstance(error, Mapping):
            error = error.get("message") or json.dumps(error, sort_keys=True)
        raise FetchError(f"Data service returned an error: {error}")


def parse_structured_rows(payload: str | Sequence[Any] | Mapping[str, Any]) -> list[RawRow]:
    data: Any = payload
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise MalformedPayloadError(f"Structured payload is not valid JSON: {exc.msg}") from exc

    if isinstance(data, Mapping):
        _raise_for_error_object(data)
        raise SchemaViolationError("Structured payload must be an array of row objects")
    if not isinstance(data, list):
        raise SchemaViolationError("Structured payload must be an array of row objects")

    rows: list[RawRow] = []
    for index, item in enumerate(data):
        if not isinstance(item, Mapping):
            raise SchemaViolationError(f"Structured row {index} is not an object")
        rows.append(dict(item))
    return rows


def parse_payload(payload: Any, strategy: ParseStrategy | str) -> list[RawRow]:
    resolved = ParseStrategy(strategy)
    if resolved is ParseStrategy.STRUCTURED_JSON:
        return parse_structured_rows(payload)
    if not isinstance(payload, str):
        raise MalformedPayloadError(f"{resolved.value} payloads must be text")
    if resolved is ParseStrategy.JSONP_TABLE:
        return parse_jsonp_table(payload)
    return parse_delimited_text(payload)
