from typing import List, Optional

import asyncpg

from pgdeck.concurrency.serializer import RequestSerializer
from pgdeck.concurrency.signal import CancellationSignal, check
from pgdeck.editing.edit_session import RowSnapshot, TableSnapshot
from pgdeck.editing.values import from_python
from pgdeck.errors import QueryFailed
from pgdeck.introspection import queries
from pgdeck.logging_config import get_logger, log_performance
from pgdeck.query_builder import quote_qualified, select_rows
from pgdeck.query_builder.builder import sql_logger
from pgdeck.session import Session

logger = get_logger(__name__)

DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class TableDataReader:
    """
    Reads pages of table rows for the edit grid.

    Reads share the catalog serializer. Column names and types come from the
    prepared statement, so an empty page still knows its columns.
    """

    def __init__(self, session: Session, serializer: Optional[RequestSerializer] = None):
        self.session = session
        self.serializer = serializer or RequestSerializer()

    async def primary_key_columns(
        self, schema: str, table: str, signal: Optional[CancellationSignal] = None
    ) -> List[str]:
        async with self.serializer.permit(signal):
            async with self.session.acquire() as conn:
                try:
                    rows = await conn.fetch(queries.PRIMARY_KEY_QUERY, schema, table)
                except DRIVER_ERRORS as e:
                    logger.warning("Primary key lookup for %s.%s failed: %s", schema, table, e)
                    return []
        return [row["column_name"] for row in rows]

    async def _read(self, schema: str, table: str, query, primary_keys, limit, offset, signal) -> TableSnapshot:
        sql, params = query.build()
        async with self.serializer.permit(signal):
            check(signal)
            async with self.session.acquire() as conn:
                try:
                    sql_logger.info("%s %r", sql, params)
                    statement = await conn.prepare(sql)
                    attributes = statement.get_attributes()
                    records = await statement.fetch(*params)
                except DRIVER_ERRORS as e:
                    logger.error("Reading %s.%s failed: %s", schema, table, e)
                    raise QueryFailed(str(e), sql) from e
        check(signal)

        columns = [attr.name for attr in attributes]
        type_names = [attr.type.name for attr in attributes]
        column_types = {
            attr.name: quote_qualified(attr.type.schema, attr.type.name) for attr in attributes
        }
        rows = [
            RowSnapshot.loaded(
                {
                    column: from_python(record[i], type_names[i])
                    for i, column in enumerate(columns)
                }
            )
            for record in records
        ]
        return TableSnapshot(
            schema_name=schema,
            table_name=table,
            columns=columns,
            column_types=column_types,
            primary_keys=list(primary_keys),
            rows=rows,
            limit=limit,
            offset=offset,
        )

    @log_performance(logger, "load table snapshot")
    async def load_table_snapshot(
        self,
        schema: str,
        table: str,
        limit: int = 100,
        offset: int = 0,
        signal: Optional[CancellationSignal] = None,
    ) -> TableSnapshot:
        """
        One page of rows, ordered by primary key (or by the first column
        when the table has none).
        """
        primary_keys = await self.primary_key_columns(schema, table, signal)
        query = select_rows(table, schema).order_by(*primary_keys).limit(limit).offset(offset)
        return await self._read(schema, table, query, primary_keys, limit, offset, signal)

    async def search_rows(
        self,
        schema: str,
        table: str,
        column: str,
        term: str,
        limit: int = 100,
        signal: Optional[CancellationSignal] = None,
    ) -> TableSnapshot:
        """Rows whose ``column`` contains ``term``, case-insensitively."""
        primary_keys = await self.primary_key_columns(schema, table, signal)
        query = (
            select_rows(table, schema)
            .contains(column, term)
            .order_by(*primary_keys)
            .limit(limit)
        )
        return await self._read(schema, table, query, primary_keys, limit, 0, signal)

    async def row_count(self, schema: str, table: str, signal: Optional[CancellationSignal] = None) -> int:
        """Exact row count. Failures are logged and reported as 0."""
        sql, params = select_rows(table, schema).count().build()
        async with self.serializer.permit(signal):
            async with self.session.acquire() as conn:
                try:
                    return await conn.fetchval(sql, *params) or 0
                except DRIVER_ERRORS as e:
                    logger.warning("Counting rows of %s.%s failed: %s", schema, table, e)
                    return 0
