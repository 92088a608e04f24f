"""
Catalog reads that turn pg_catalog rows into descriptors.

All reads share one :class:`RequestSerializer`, so at most one catalog query
is in flight for a session. Each method takes an optional cancellation
signal; a request cancelled before or during its work raises
:class:`Cancelled` and never returns partial results.
"""

from typing import Dict, List, Optional, Tuple

import asyncpg

from pgdeck.concurrency.serializer import RequestSerializer
from pgdeck.concurrency.signal import CancellationSignal, check
from pgdeck.errors import QueryFailed
from pgdeck.introspection import queries
from pgdeck.introspection.arguments import parse_function_arguments
from pgdeck.introspection.descriptors import (
    ColumnDescriptor,
    FunctionDescriptor,
    IndexDescriptor,
    PolicyDescriptor,
    TableDescriptor,
    TriggerDescriptor,
    ViewDescriptor,
)
from pgdeck.logging_config import get_logger, log_performance
from pgdeck.session import Session

logger = get_logger(__name__)

DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _is_user_schema(schema_name: str) -> bool:
    return schema_name not in queries.SYSTEM_SCHEMAS


class CatalogReader:
    def __init__(self, session: Session, serializer: Optional[RequestSerializer] = None):
        self.session = session
        self.serializer = serializer or RequestSerializer()

    async def _fetch(self, sql: str, args: list, signal: Optional[CancellationSignal]):
        async with self.serializer.permit(signal):
            check(signal)
            async with self.session.acquire() as conn:
                try:
                    rows = await conn.fetch(sql, *args)
                except DRIVER_ERRORS as e:
                    logger.error("Catalog query failed: %s", e)
                    raise QueryFailed(str(e), sql) from e
        check(signal)
        return rows

    @log_performance(logger, "list tables")
    async def list_tables(
        self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None
    ) -> List[TableDescriptor]:
        sql, args = queries.tables_query(schema)
        rows = await self._fetch(sql, args, signal)
        return [
            TableDescriptor.model_validate(dict(row))
            for row in rows
            if _is_user_schema(row["schema_name"])
        ]

    @log_performance(logger, "list columns")
    async def list_columns(
        self, schema: str, table: str, signal: Optional[CancellationSignal] = None
    ) -> List[ColumnDescriptor]:
        """
        Columns of ``schema.table`` in ordinal order, annotated with primary
        and foreign key membership.

        The three lookups run back to back under a single permit on one
        connection. Key lookups fail soft: a failure there leaves the
        columns unannotated and is logged.
        """
        async with self.serializer.permit(signal):
            check(signal)
            async with self.session.acquire() as conn:
                try:
                    rows = await conn.fetch(queries.COLUMNS_QUERY, schema, table)
                except DRIVER_ERRORS as e:
                    logger.error("Column query for %s.%s failed: %s", schema, table, e)
                    raise QueryFailed(str(e), queries.COLUMNS_QUERY) from e

                check(signal)
                primary_keys = await self._primary_keys(conn, schema, table)
                check(signal)
                foreign_keys = await self._foreign_keys(conn, schema, table)
        check(signal)

        columns = []
        for row in rows:
            data = dict(row)
            name = data["name"]
            data["is_primary_key"] = name in primary_keys
            if name in foreign_keys:
                data["is_foreign_key"] = True
                data["foreign_table"], data["foreign_column"] = foreign_keys[name]
            columns.append(ColumnDescriptor.model_validate(data))
        return columns

    async def _primary_keys(self, conn, schema: str, table: str) -> List[str]:
        try:
            rows = await conn.fetch(queries.PRIMARY_KEY_QUERY, schema, table)
        except DRIVER_ERRORS as e:
            logger.warning("Primary key lookup for %s.%s failed: %s", schema, table, e)
            return []
        return [row["column_name"] for row in rows]

    async def _foreign_keys(self, conn, schema: str, table: str) -> Dict[str, Tuple[str, str]]:
        try:
            rows = await conn.fetch(queries.FOREIGN_KEY_QUERY, schema, table)
        except DRIVER_ERRORS as e:
            logger.warning("Foreign key lookup for %s.%s failed: %s", schema, table, e)
            return {}
        result = {}
        for row in rows:
            # A column in several foreign keys reports the first one.
            result.setdefault(row["column_name"], (row["foreign_table"], row["foreign_column"]))
        return result

    @log_performance(logger, "list indexes")
    async def list_indexes(
        self,
        schema: Optional[str] = None,
        table: Optional[str] = None,
        signal: Optional[CancellationSignal] = None,
    ) -> List[IndexDescriptor]:
        sql, args = queries.indexes_query(schema, table)
        rows = await self._fetch(sql, args, signal)
        indexes = []
        for row in rows:
            data = dict(row)
            data["columns"] = tuple(data["columns"] or ())
            data["is_partial"] = data["partial_condition"] is not None
            indexes.append(IndexDescriptor.model_validate(data))
        return indexes

    @log_performance(logger, "list triggers")
    async def list_triggers(
        self,
        schema: Optional[str] = None,
        table: Optional[str] = None,
        signal: Optional[CancellationSignal] = None,
    ) -> List[TriggerDescriptor]:
        sql, args = queries.triggers_query(schema, table)
        rows = await self._fetch(sql, args, signal)
        triggers = []
        for row in rows:
            data = dict(row)
            data["events"] = tuple(data["events"] or ())
            triggers.append(TriggerDescriptor.model_validate(data))
        return triggers

    @log_performance(logger, "list policies")
    async def list_policies(
        self,
        schema: Optional[str] = None,
        table: Optional[str] = None,
        signal: Optional[CancellationSignal] = None,
    ) -> List[PolicyDescriptor]:
        sql, args = queries.policies_query(schema, table)
        rows = await self._fetch(sql, args, signal)
        policies = []
        for row in rows:
            data = dict(row)
            data["policy_type"] = "RESTRICTIVE" if data["policy_type"] == "RESTRICTIVE" else "PERMISSIVE"
            data["role"] = data["role"] or "public"
            policies.append(PolicyDescriptor.model_validate(data))
        return policies

    @log_performance(logger, "list functions")
    async def list_functions(
        self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None
    ) -> List[FunctionDescriptor]:
        sql, args = queries.functions_query(schema)
        rows = await self._fetch(sql, args, signal)
        functions = []
        for row in rows:
            data = dict(row)
            data["parameters"] = parse_function_arguments(data.pop("arguments"))
            functions.append(FunctionDescriptor.model_validate(data))
        return functions

    @log_performance(logger, "list views")
    async def list_views(
        self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None
    ) -> List[ViewDescriptor]:
        sql, args = queries.views_query(schema)
        rows = await self._fetch(sql, args, signal)
        return [ViewDescriptor.model_validate(dict(row)) for row in rows]
