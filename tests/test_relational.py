from __future__ import annotations

from typing import Any

import pytest

from call_insights.config import SourceConfig
from call_insights.errors import FetchError
from call_insights.io import relational as relational_module
from call_insights.io.relational import TableQuery, build_select, query_for_source, select_rows


class _FakeSQLText(str):
    def format(self, *args: object, **kwargs: object) -> "_FakeSQLText":
        text = str(self)
        for value in args:
            text = text.replace("{}", str(value), 1)
        for key, value in kwargs.items():
            text = text.replace("{" + key + "}", str(value))
        return _FakeSQLText(text)

    def join(self, items: Any) -> "_FakeSQLText":
        return _FakeSQLText(str(self).join(str(item) for item in items))


class _FakeSQLModule:
    @staticmethod
    def SQL(text: str) -> _FakeSQLText:
        return _FakeSQLText(text)

    @staticmethod
    def Identifier(name: str) -> str:
        return f'"{name}"'


class _FakeDatabaseError(Exception):
    pass


class _FakeCursor:
    def __init__(self, columns: list[str], rows: list[tuple[Any, ...]], fail: bool = False) -> None:
        self.description = [(name,) for name in columns]
        self._rows = rows
        self._fail = fail
        self.executed: list[str] = []

    def execute(self, query: object) -> None:
        if self._fail:
            raise _FakeDatabaseError('relation "call_history" does not exist')
        self.executed.append(str(query))

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._rows)

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class _FakeConnection:
    def __init__(self, cursor: _FakeCursor) -> None:
        self._cursor = cursor

    def cursor(self) -> _FakeCursor:
        return self._cursor

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class _FakePsycopg:
    Error = _FakeDatabaseError

    def __init__(self, connection: _FakeConnection) -> None:
        self._connection = connection
        self.connect_calls: list[str] = []

    def connect(self, db_url: str) -> _FakeConnection:
        self.connect_calls.append(db_url)
        return self._connection


def test_build_select_quotes_identifiers_and_applies_clauses() -> None:
    query = TableQuery(
        table="call_history",
        columns=("id", "tour_date"),
        not_null="tour_date",
        order_by="tour_date",
    )

    statement = str(build_select(query, _FakeSQLModule()))

    assert statement == (
        'SELECT "id", "tour_date" FROM "call_history"'
        ' WHERE "tour_date" IS NOT NULL ORDER BY "tour_date" ASC'
    )


def test_build_select_defaults_to_all_columns() -> None:
    statement = str(
        build_select(
            TableQuery(table="call_history", order_by="created_at", descending=True),
            _FakeSQLModule(),
        )
    )

    assert statement == 'SELECT * FROM "call_history" ORDER BY "created_at" DESC'


def test_query_for_source_copies_relational_settings() -> None:
    source = SourceConfig(
        entity="call",
        kind="relational",
        table="call_history",
        columns=["id", "name"],
        not_null="tour_date",
    )

    assert query_for_source(source) == TableQuery(
        table="call_history", columns=("id", "name"), not_null="tour_date"
    )
    with pytest.raises(ValueError):
        query_for_source(SourceConfig(entity="client", kind="jsonp_table", sheet_id="a"))


def test_select_rows_returns_row_objects_in_result_order(monkeypatch) -> None:
    cursor = _FakeCursor(["id", "name"], [(2, "Ravi"), (1, "Asha")])
    fake_psycopg = _FakePsycopg(_FakeConnection(cursor))
    monkeypatch.setattr(relational_module, "_load_psycopg", lambda: (fake_psycopg, _FakeSQLModule()))

    rows = select_rows("postgresql://localhost/calls", TableQuery(table="call_history"))

    assert rows == [{"id": 2, "name": "Ravi"}, {"id": 1, "name": "Asha"}]
    assert fake_psycopg.connect_calls == ["postgresql://localhost/calls"]
    assert cursor.executed == ['SELECT * FROM "call_history"']


def test_select_rows_wraps_database_errors(monkeypatch) -> None:
    cursor = _FakeCursor([], [], fail=True)
    fake_psycopg = _FakePsycopg(_FakeConnection(cursor))
    monkeypatch.setattr(relational_module, "_load_psycopg", lambda: (fake_psycopg, _FakeSQLModule()))

    with pytest.raises(FetchError, match="does not exist"):
        select_rows("postgresql://localhost/calls", TableQuery(table="call_history"))


def test_select_rows_requires_a_database_url() -> None:
    with pytest.raises(FetchError, match="CALL_INSIGHTS_DB_URL"):
        select_rows(None, TableQuery(table="call_history"))
