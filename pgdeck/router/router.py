import typing
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Query

from pgdeck.config import DeckSettings, load_settings
from pgdeck.editing.edit_session import TableSnapshot
from pgdeck.explorer import Explorer
from pgdeck.introspection.descriptors import (
    ColumnDescriptor,
    FunctionDescriptor,
    IndexDescriptor,
    PolicyDescriptor,
    TableDescriptor,
    TriggerDescriptor,
    ViewDescriptor,
)
from pgdeck.logging_config import get_logger
from pgdeck.session import Session

logger = get_logger(__name__)


class DeckRouter(APIRouter):
    """
    Read-only HTTP surface over an :class:`Explorer`.

    The router owns the session: the pool is opened when the application
    starts and closed when it stops.
    """

    def __init__(
        self,
        connection_str: str | None = None,
        settings: DeckSettings | None = None,
        session: Session | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs, lifespan=self.lifespan)

        self.settings = settings or load_settings()
        self.session = session or Session.from_settings(self.settings)
        if connection_str is not None:
            self.session.dsn = connection_str
        self.explorer = Explorer(self.session, self.settings)
        self._mount()

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        if not self.session.is_connected:
            await self.session.connect()
        logger.info("DeckRouter started")
        yield
        await self.session.disconnect()

    def _mount(self):
        self.add_api_route(
            "/server",
            self.server,
            methods=["GET"],
            summary="Server version of the connected database",
        )
        self.add_api_route(
            "/tables",
            self.tables,
            methods=["GET"],
            response_model=typing.List[TableDescriptor],
            summary="List user tables",
        )
        self.add_api_route(
            "/tables/{schema}/{table}/columns",
            self.columns,
            methods=["GET"],
            response_model=typing.List[ColumnDescriptor],
            summary="List the columns of a table",
        )
        self.add_api_route(
            "/tables/{schema}/{table}/ddl",
            self.table_ddl,
            methods=["GET"],
            summary="CREATE TABLE statement for a table",
        )
        self.add_api_route(
            "/tables/{schema}/{table}/rows",
            self.rows,
            methods=["GET"],
            response_model=TableSnapshot,
            summary="One page of table rows",
        )
        self.add_api_route(
            "/tables/{schema}/{table}/search",
            self.search,
            methods=["GET"],
            response_model=TableSnapshot,
            summary="Rows whose column contains a search term",
        )
        self.add_api_route(
            "/tables/{schema}/{table}/count",
            self.count,
            methods=["GET"],
            summary="Exact row count of a table",
        )
        self.add_api_route(
            "/indexes",
            self.indexes,
            methods=["GET"],
            response_model=typing.List[IndexDescriptor],
            summary="List indexes",
        )
        self.add_api_route(
            "/triggers",
            self.triggers,
            methods=["GET"],
            response_model=typing.List[TriggerDescriptor],
            summary="List triggers",
        )
        self.add_api_route(
            "/policies",
            self.policies,
            methods=["GET"],
            response_model=typing.List[PolicyDescriptor],
            summary="List row level security policies",
        )
        self.add_api_route(
            "/functions",
            self.functions,
            methods=["GET"],
            response_model=typing.List[FunctionDescriptor],
            summary="List functions and procedures",
        )
        self.add_api_route(
            "/views",
            self.views,
            methods=["GET"],
            response_model=typing.List[ViewDescriptor],
            summary="List views and materialized views",
        )

    async def server(self):
        return {"version": self.session.server_version or await self.session.test_connection()}

    async def tables(self, schema: str | None = None):
        return await self.explorer.list_tables(schema)

    async def columns(self, schema: str, table: str):
        return await self.explorer.list_columns(schema, table)

    async def table_ddl(self, schema: str, table: str):
        tables = await self.explorer.list_tables(schema)
        descriptor = next((t for t in tables if t.name == table), None)
        if descriptor is None:
            raise HTTPException(status_code=404, detail=f"Table {schema}.{table} not found")
        columns = await self.explorer.list_columns(schema, table)
        return {"ddl": self.explorer.synthesize_ddl(descriptor, columns)}

    async def rows(
        self,
        schema: str,
        table: str,
        limit: int | None = Query(default=None, ge=1),
        offset: int = Query(default=0, ge=0),
    ):
        return await self.explorer.load_table_snapshot(schema, table, limit, offset)

    async def search(
        self,
        schema: str,
        table: str,
        column: str,
        term: str,
        limit: int | None = Query(default=None, ge=1),
    ):
        return await self.explorer.search_rows(schema, table, column, term, limit)

    async def count(self, schema: str, table: str):
        return {"count": await self.explorer.row_count(schema, table)}

    async def indexes(self, schema: str | None = None, table: str | None = None):
        return await self.explorer.list_indexes(schema, table)

    async def triggers(self, schema: str | None = None, table: str | None = None):
        return await self.explorer.list_triggers(schema, table)

    async def policies(self, schema: str | None = None, table: str | None = None):
        return await self.explorer.list_policies(schema, table)

    async def functions(self, schema: str | None = None):
        return await self.explorer.list_functions(schema)

    async def views(self, schema: str | None = None):
        return await self.explorer.list_views(schema)
