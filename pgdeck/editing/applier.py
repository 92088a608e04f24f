"""
Writes the changes recorded in an EditSession back to the database.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

import asyncpg

from pgdeck.editing.edit_session import EditSession, RowSnapshot, RowState
from pgdeck.editing.values import TextValue, to_python
from pgdeck.errors import NoPrimaryKey, RowApplyFailed
from pgdeck.logging_config import get_logger, log_performance
from pgdeck.query_builder import TextCast, affected_rows, delete, insert, update
from pgdeck.session import Session

logger = get_logger(__name__)

DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class ApplyOutcome(str, Enum):
    NOTHING = "nothing"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class ApplyReport:
    succeeded: int = 0
    failed: int = 0
    errors: List[RowApplyFailed] = field(default_factory=list)

    @property
    def outcome(self) -> ApplyOutcome:
        if self.failed == 0:
            return ApplyOutcome.SUCCEEDED if self.succeeded else ApplyOutcome.NOTHING
        return ApplyOutcome.PARTIAL if self.succeeded else ApplyOutcome.FAILED

    @property
    def messages(self) -> List[str]:
        return [str(e) for e in self.errors]

    def summary(self, limit: int = 5) -> str:
        """Human-readable result with at most ``limit`` error lines."""
        outcome = self.outcome
        if outcome is ApplyOutcome.NOTHING:
            return "No changes to save"
        if outcome is ApplyOutcome.SUCCEEDED:
            return f"Saved {self.succeeded} row(s)"

        lines = [f"Saved {self.succeeded} row(s), {self.failed} failed:"]
        lines.extend(self.messages[:limit])
        remaining = len(self.errors) - limit
        if remaining > 0:
            lines.append(f"... and {remaining} more")
        return "\n".join(lines)


class EditApplier:
    """
    Replays an EditSession: inserts, then updates, then deletes.

    Every row runs in its own transaction, so one failing row never undoes or
    blocks the others. An UPDATE or DELETE that matches no row counts as a
    failure. Rows that were written are marked unchanged in the session (or
    dropped, for deletes); failed rows keep their state for a retry.
    """

    def __init__(self, session: Session):
        self.session = session

    def _bind(self, edits: EditSession, column: str, value) -> Any:
        type_name = edits.column_types.get(column)
        if isinstance(value, TextValue) and type_name:
            return TextCast(value.value, type_name)
        return to_python(value)

    def _key(self, edits: EditSession, row: RowSnapshot) -> Dict[str, Any]:
        return {k: to_python(v) for k, v in edits.key_predicate(row).items()}

    def _insert_query(self, edits: EditSession, row: RowSnapshot):
        query = insert(edits.table_name, edits.schema_name)
        for column, value in edits.insert_values(row).items():
            query.value(column, self._bind(edits, column, value))
        return query

    def _update_query(self, edits: EditSession, row: RowSnapshot, columns: List[str]):
        query = update(edits.table_name, edits.schema_name)
        for column in columns:
            query.set(column, self._bind(edits, column, row.values[column]))
        for key, value in self._key(edits, row).items():
            query.where_equals(key, value)
        return query

    def _delete_query(self, edits: EditSession, row: RowSnapshot):
        query = delete(edits.table_name, edits.schema_name)
        for key, value in self._key(edits, row).items():
            query.where_equals(key, value)
        return query

    async def _apply_row(self, conn, operation: str, query, failure_context: dict, expect_match: bool):
        try:
            async with conn.transaction():
                status = await query.execute(conn)
                if expect_match and affected_rows(status) == 0:
                    raise RowApplyFailed(operation, "no matching row (it may have been changed or deleted)", **failure_context)
        except RowApplyFailed:
            raise
        except DRIVER_ERRORS as e:
            raise RowApplyFailed(operation, str(e), **failure_context) from e

    @log_performance(logger, "apply edits")
    async def apply(self, edits: EditSession) -> ApplyReport:
        report = ApplyReport()
        if not edits.has_changes:
            return report
        if not edits.primary_keys:
            raise NoPrimaryKey(edits.qualified_name)

        added = edits.rows_in_state(RowState.ADDED)
        modified = edits.rows_in_state(RowState.MODIFIED)
        deleted = edits.rows_in_state(RowState.DELETED)
        applied: List[RowSnapshot] = []

        async with self.session.acquire() as conn:
            for operation, rows in (("INSERT", added), ("UPDATE", modified), ("DELETE", deleted)):
                for row in rows:
                    if operation == "INSERT":
                        query = self._insert_query(edits, row)
                        context = {"columns": query.columns}
                    elif operation == "UPDATE":
                        columns = edits.changed_columns(row)
                        if not columns:
                            # Edited back to its original values.
                            edits.mark_applied(row)
                            continue
                        query = self._update_query(edits, row, columns)
                        context = {"key": self._key(edits, row), "columns": columns}
                    else:
                        query = self._delete_query(edits, row)
                        context = {"key": self._key(edits, row)}

                    try:
                        await self._apply_row(conn, operation, query, context, expect_match=operation != "INSERT")
                    except RowApplyFailed as e:
                        logger.warning("%s", e)
                        report.failed += 1
                        report.errors.append(e)
                        continue
                    report.succeeded += 1
                    applied.append(row)

        for row in applied:
            edits.mark_applied(row)

        logger.info(
            "Applied edits to %s: %d succeeded, %d failed",
            edits.qualified_name, report.succeeded, report.failed,
        )
        return report
