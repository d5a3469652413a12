from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from call_insights.config import SourceConfig
from call_insights.errors import FetchError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableQuery:
    table: str
    columns: tuple[str, ...] = ()
    not_null: str | None = None
    order_by: str | None = None
    descending: bool = False


def _load_psycopg():
    try:
        import psycopg
        from psycopg import sql
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "psycopg is required for relational sources. "
            "Install with: pip install 'psycopg[binary]'"
        ) from exc
    return psycopg, sql


def query_for_source(source: SourceConfig) -> TableQuery:
    if source.kind != "relational" or not source.table:
        raise ValueError("query_for_source requires a relational source with a table")
    return TableQuery(
        table=source.table,
        columns=tuple(source.columns or ()),
        not_null=source.not_null,
        order_by=source.order_by,
        descending=source.descending,
    )


def build_select(query: TableQuery, sql: Any) -> Any:
    if query.columns:
        columns_sql = sql.SQL(", ").join(sql.Identifier(column) for column in query.columns)
    else:
        columns_sql = sql.SQL("*")

    where_sql = sql.SQL("")
    if query.not_null:
        where_sql = sql.SQL(" WHERE {column} IS NOT NULL").format(
            column=sql.Identifier(query.not_null)
        )

    order_sql = sql.SQL("")
    if query.order_by:
        direction = "DESC" if query.descending else "ASC"
        order_sql = sql.SQL(" ORDER BY {column} " + direction).format(
            column=sql.Identifier(query.order_by)
        )

    return sql.SQL("SELECT {columns} FROM {table_name}{where_sql}{order_sql}").format(
        columns=columns_sql,
        table_name=sql.Identifier(query.table),
        where_sql=where_sql,
        order_sql=order_sql,
    )


def select_rows(db_url: str | None, query: TableQuery) -> list[dict[str, Any]]:
    """Run one select against the data service and return row objects in result order."""
    if not db_url:
        raise FetchError(
            f"No database URL configured for table '{query.table}'. "
            "Set CALL_INSIGHTS_DB_URL or the source's db_url."
        )

    psycopg, sql = _load_psycopg()
    statement = build_select(query, sql)
    LOGGER.info("Querying table %s", query.table)
    try:
        with psycopg.connect(db_url) as conn:
            with conn.cursor() as cursor:
                cursor.execute(statement)
                column_names = [item[0] for item in (cursor.description or [])]
                rows = cursor.fetchall()
    except psycopg.Error as exc:
        raise FetchError(f"Query against table '{query.table}' failed: {exc}") from exc

    LOGGER.debug("Table %s returned %d rows", query.table, len(rows))
    return [dict(zip(column_names, row)) for row in rows]
