"""
Exception types raised by pgdeck.

Driver exceptions are translated into these at the component boundary so
callers only ever deal with one hierarchy.
"""

from typing import Optional, Sequence


class PgDeckError(Exception):
    """Base class for every error raised by pgdeck."""


class NotConnected(PgDeckError):
    """An operation was attempted without an established session."""

    def __init__(self, message: str = "Not connected to a database"):
        super().__init__(message)


class Cancelled(PgDeckError):
    """The caller's cancellation signal fired before the work completed."""

    def __init__(self, message: str = "Request was cancelled"):
        super().__init__(message)


class QueryFailed(PgDeckError):
    """A catalog or data query was rejected by the server or the driver."""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.sql = sql


class NoPrimaryKey(PgDeckError):
    """Row editing was requested for a table without a primary key."""

    def __init__(self, table: Optional[str] = None):
        if table:
            message = f"Table {table} has no primary key; editing is disabled"
        else:
            message = "Table has no primary key; editing is disabled"
        super().__init__(message)
        self.table = table


class RowApplyFailed(PgDeckError):
    """A single row of an edit batch could not be written."""

    def __init__(
        self,
        operation: str,
        message: str,
        key: Optional[dict] = None,
        columns: Optional[Sequence[str]] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.message = message
        self.key = dict(key) if key else {}
        self.columns = tuple(columns) if columns else ()

    def __str__(self) -> str:
        if self.key:
            target = ", ".join(f"{k}={v!r}" for k, v in self.key.items())
        elif self.columns:
            target = ", ".join(self.columns)
        else:
            target = "<no columns>"
        return f"{self.operation} failed for ({target}): {self.message}"
