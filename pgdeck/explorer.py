"""
Explorer: the object a front end drives.

It owns the request serializer shared by every catalog read and the stale
request guard for table selection, and wires the catalog reader, DDL
synthesizer, data reader and edit applier to one session.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from pgdeck.concurrency.guard import StaleRequestGuard
from pgdeck.concurrency.serializer import RequestSerializer
from pgdeck.concurrency.signal import CancellationSignal
from pgdeck.config import DeckSettings
from pgdeck.ddl.synthesizer import DdlSynthesizer
from pgdeck.editing.applier import ApplyOutcome, ApplyReport, EditApplier
from pgdeck.editing.data import TableDataReader
from pgdeck.editing.edit_session import EditSession, TableSnapshot
from pgdeck.errors import Cancelled, PgDeckError
from pgdeck.introspection.catalog import CatalogReader
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


class TableSelection(BaseModel):
    """What the UI shows for the selected table."""

    model_config = ConfigDict(frozen=True)

    table: TableDescriptor
    columns: tuple[ColumnDescriptor, ...]
    ddl: str


class Explorer:
    def __init__(self, session: Session, settings: Optional[DeckSettings] = None):
        self.session = session
        self.settings = settings or DeckSettings()
        self.serializer = RequestSerializer()
        self.guard = StaleRequestGuard()
        self.catalog = CatalogReader(session, self.serializer)
        self.synthesizer = DdlSynthesizer()
        self.data = TableDataReader(session, self.serializer)
        self.applier = EditApplier(session)
        self.selected: Optional[TableSelection] = None

    async def select_table(self, table: TableDescriptor) -> Optional[TableSelection]:
        """
        Load columns and DDL for ``table`` and make it the selection.

        Selecting another table while this one is loading supersedes it: the
        older call returns None and never touches :attr:`selected`, even when
        its query fails.
        """
        token = self.guard.begin()
        try:
            columns = await self.catalog.list_columns(table.schema_name, table.name, token.signal)
        except Cancelled:
            logger.debug("Column load for %s superseded", table.qualified_name)
            return None
        except PgDeckError:
            if self.guard.is_current(token):
                raise
            logger.debug("Column load for %s failed after it was superseded", table.qualified_name)
            return None

        if not self.guard.is_current(token):
            return None

        selection = TableSelection(
            table=table,
            columns=tuple(columns),
            ddl=self.synthesizer.table_ddl(table, columns),
        )
        self.selected = selection
        return selection

    def cancel_selection(self) -> None:
        current = self.guard.current
        if current is not None:
            self.guard.cancel_if_current(current)

    async def list_tables(self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[TableDescriptor]:
        return await self.catalog.list_tables(schema, signal)

    async def list_columns(self, schema: str, table: str, signal: Optional[CancellationSignal] = None) -> List[ColumnDescriptor]:
        return await self.catalog.list_columns(schema, table, signal)

    async def list_indexes(self, schema: Optional[str] = None, table: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[IndexDescriptor]:
        return await self.catalog.list_indexes(schema, table, signal)

    async def list_triggers(self, schema: Optional[str] = None, table: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[TriggerDescriptor]:
        return await self.catalog.list_triggers(schema, table, signal)

    async def list_policies(self, schema: Optional[str] = None, table: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[PolicyDescriptor]:
        return await self.catalog.list_policies(schema, table, signal)

    async def list_functions(self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[FunctionDescriptor]:
        return await self.catalog.list_functions(schema, signal)

    async def list_views(self, schema: Optional[str] = None, signal: Optional[CancellationSignal] = None) -> List[ViewDescriptor]:
        return await self.catalog.list_views(schema, signal)

    def synthesize_ddl(self, descriptor, columns: Optional[List[ColumnDescriptor]] = None) -> str:
        return self.synthesizer.synthesize(descriptor, columns)

    def drop_ddl(self, descriptor, cascade: bool = False) -> str:
        return self.synthesizer.drop(descriptor, cascade)

    async def load_table_snapshot(
        self,
        schema: str,
        table: str,
        limit: Optional[int] = None,
        offset: int = 0,
        signal: Optional[CancellationSignal] = None,
    ) -> TableSnapshot:
        if limit is None:
            limit = self.settings.page_size
        return await self.data.load_table_snapshot(schema, table, limit, offset, signal)

    async def search_rows(self, schema: str, table: str, column: str, term: str, limit: Optional[int] = None) -> TableSnapshot:
        return await self.data.search_rows(schema, table, column, term, limit or self.settings.page_size)

    async def row_count(self, schema: str, table: str) -> int:
        return await self.data.row_count(schema, table)

    async def open_editor(self, schema: str, table: str, limit: Optional[int] = None, offset: int = 0) -> EditSession:
        snapshot = await self.load_table_snapshot(schema, table, limit, offset)
        return EditSession.from_snapshot(snapshot)

    async def apply_edits(self, edits: EditSession, refresh: bool = True) -> ApplyReport:
        """
        Write ``edits`` and, when every row succeeded, reload the page so
        server-side defaults and triggers show up. After a partial failure
        the session is left as is so the failed rows can be fixed and
        retried. A failed reload is logged and the report is still returned.
        """
        report = await self.applier.apply(edits)
        if report.failed:
            logger.warning("%s", report.summary(self.settings.error_display_limit))
        if refresh and report.outcome is ApplyOutcome.SUCCEEDED:
            try:
                snapshot = await self.data.load_table_snapshot(
                    edits.schema_name, edits.table_name, edits.limit or self.settings.page_size, edits.offset
                )
            except PgDeckError as e:
                logger.warning("Reloading %s.%s after apply failed: %s", edits.schema_name, edits.table_name, e)
                return report
            edits.load(
                [{c: row.values[c] for c in snapshot.columns} for row in snapshot.rows],
                snapshot.primary_keys,
                snapshot.columns,
                snapshot.column_types,
            )
        return report
