"""
In-memory editing state for one page of table rows.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from pgdeck.editing.values import NULL, RowValue, from_python, is_null, normalize
from pgdeck.errors import NoPrimaryKey


class RowState(str, Enum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class RowSnapshot(BaseModel):
    values: Dict[str, RowValue]
    original: Dict[str, RowValue] = Field(default_factory=dict)
    state: RowState = RowState.UNCHANGED

    @classmethod
    def loaded(cls, values: Dict[str, Any]) -> "RowSnapshot":
        return cls(values=dict(values), original=dict(values), state=RowState.UNCHANGED)


class TableSnapshot(BaseModel):
    schema_name: str
    table_name: str
    columns: List[str]
    column_types: Dict[str, str] = Field(default_factory=dict)
    primary_keys: List[str] = Field(default_factory=list)
    rows: List[RowSnapshot] = Field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0

    @property
    def editable(self) -> bool:
        return bool(self.primary_keys)


class EditSession:
    """
    Tracks user edits against a loaded page of rows.

    Rows move through the states in :class:`RowState`: edits turn an
    unchanged row into a modified one, new rows start as added, and removal
    marks a row deleted, except for an added row, which is simply dropped.
    Nothing reaches the database until an EditApplier replays the session.

    A table without a primary key can be viewed but not edited: every
    mutation raises :class:`NoPrimaryKey`.
    """

    def __init__(self, schema_name: Optional[str] = None, table_name: Optional[str] = None):
        self.schema_name = schema_name
        self.table_name = table_name
        self.columns: List[str] = []
        self.column_types: Dict[str, str] = {}
        self.primary_keys: List[str] = []
        self.rows: List[RowSnapshot] = []
        self.limit: Optional[int] = None
        self.offset = 0

    @classmethod
    def from_snapshot(cls, snapshot: TableSnapshot) -> "EditSession":
        session = cls(snapshot.schema_name, snapshot.table_name)
        session.columns = list(snapshot.columns)
        session.column_types = dict(snapshot.column_types)
        session.primary_keys = list(snapshot.primary_keys)
        session.rows = [row.model_copy(deep=True) for row in snapshot.rows]
        session.limit = snapshot.limit
        session.offset = snapshot.offset
        return session

    @property
    def qualified_name(self) -> Optional[str]:
        if self.table_name is None:
            return None
        if self.schema_name:
            return f"{self.schema_name}.{self.table_name}"
        return self.table_name

    @property
    def editable(self) -> bool:
        return bool(self.primary_keys)

    def load(
        self,
        rows: Iterable[Mapping[str, Any]],
        primary_keys: Iterable[str],
        columns: Optional[Iterable[str]] = None,
        column_types: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Replace the snapshot. Plain Python values are wrapped as RowValues."""
        rows = list(rows)
        if columns is not None:
            self.columns = list(columns)
        elif rows:
            self.columns = list(rows[0].keys())
        else:
            self.columns = []
        self.column_types = dict(column_types or {})
        self.primary_keys = list(primary_keys)
        self.rows = [
            RowSnapshot.loaded({c: from_python(row.get(c)) for c in self.columns})
            for row in rows
        ]

    def _require_editable(self) -> None:
        if not self.primary_keys:
            raise NoPrimaryKey(self.qualified_name)

    def _check_column(self, column: str) -> None:
        if column not in self.columns:
            raise KeyError(f"Unknown column: {column}")

    def _row(self, row_index: int) -> RowSnapshot:
        if row_index < 0:
            raise IndexError(f"Row index out of range: {row_index}")
        return self.rows[row_index]

    def set_cell(self, row_index: int, column: str, value: Any) -> bool:
        """
        Set one cell. Returns False when the value did not change.

        Raises:
            NoPrimaryKey: the table has no primary key
            IndexError: no such row
            KeyError: no such column
            ValueError: the row is marked deleted
        """
        self._require_editable()
        row = self._row(row_index)
        self._check_column(column)
        if row.state is RowState.DELETED:
            raise ValueError("Deleted rows cannot be edited")

        new_value = normalize(from_python(value))
        if row.values.get(column, NULL) == new_value:
            return False

        row.values[column] = new_value
        if row.state is RowState.UNCHANGED:
            row.state = RowState.MODIFIED
        return True

    def add_row(self, values: Optional[Mapping[str, Any]] = None) -> int:
        """Append a new row and return its index."""
        self._require_editable()
        values = values or {}
        for column in values:
            self._check_column(column)
        row = RowSnapshot(
            values={c: normalize(from_python(values.get(c))) for c in self.columns},
            state=RowState.ADDED,
        )
        self.rows.append(row)
        return len(self.rows) - 1

    def delete_row(self, row_index: int) -> None:
        self._require_editable()
        row = self._row(row_index)
        if row.state is RowState.ADDED:
            del self.rows[row_index]
        else:
            row.state = RowState.DELETED

    def rows_in_state(self, state: RowState) -> List[RowSnapshot]:
        return [row for row in self.rows if row.state is state]

    @property
    def has_changes(self) -> bool:
        return any(row.state is not RowState.UNCHANGED for row in self.rows)

    def changed_columns(self, row: RowSnapshot) -> List[str]:
        return [
            column
            for column in self.columns
            if row.values.get(column, NULL) != row.original.get(column, NULL)
        ]

    def key_predicate(self, row: RowSnapshot) -> Dict[str, RowValue]:
        """Primary key values as they were when the row was loaded."""
        return {key: row.original.get(key, NULL) for key in self.primary_keys}

    def insert_values(self, row: RowSnapshot) -> Dict[str, RowValue]:
        return {column: value for column, value in row.values.items() if not is_null(value)}

    def mark_applied(self, row: RowSnapshot) -> None:
        if row.state is RowState.DELETED:
            self.rows = [r for r in self.rows if r is not row]
            return
        row.original = dict(row.values)
        row.state = RowState.UNCHANGED
