"""
Unit tests for pgdeck.editing.edit_session.
"""

import pytest

from pgdeck.editing.edit_session import EditSession, RowSnapshot, RowState, TableSnapshot
from pgdeck.editing.values import NULL, IntValue, TextValue
from pgdeck.errors import NoPrimaryKey


@pytest.fixture
def edits():
    session = EditSession("public", "users")
    session.load(
        [{"id": 1, "name": "ann"}, {"id": 2, "name": "bob"}],
        primary_keys=["id"],
        column_types={"id": "pg_catalog.int4", "name": "pg_catalog.text"},
    )
    return session


class TestLoad:

    def test_load_wraps_values(self, edits):
        assert edits.columns == ["id", "name"]
        assert edits.rows[0].values == {"id": IntValue(value=1), "name": TextValue(value="ann")}
        assert edits.rows[0].state is RowState.UNCHANGED
        assert not edits.has_changes
        assert edits.qualified_name == "public.users"

    def test_load_empty_page_keeps_columns(self):
        session = EditSession("public", "t")

        session.load([], primary_keys=["id"], columns=["id", "v"])

        assert session.columns == ["id", "v"]
        assert session.rows == []

    def test_from_snapshot_copies_rows(self):
        row = RowSnapshot.loaded({"id": IntValue(value=1)})
        snapshot = TableSnapshot(schema_name="s", table_name="t", columns=["id"], primary_keys=["id"], rows=[row])

        session = EditSession.from_snapshot(snapshot)
        session.set_cell(0, "id", 5)

        assert snapshot.rows[0].values["id"] == IntValue(value=1)
        assert session.editable and snapshot.editable


class TestMutations:

    def test_set_cell_marks_modified(self, edits):
        assert edits.set_cell(0, "name", "anne") is True

        assert edits.rows[0].state is RowState.MODIFIED
        assert edits.changed_columns(edits.rows[0]) == ["name"]
        assert edits.has_changes

    def test_same_value_is_not_a_change(self, edits):
        assert edits.set_cell(0, "name", "ann") is False
        assert edits.rows[0].state is RowState.UNCHANGED

    def test_blank_text_becomes_null(self, edits):
        edits.set_cell(1, "name", "  ")

        assert edits.rows[1].values["name"] is NULL

    def test_key_predicate_uses_original_values(self, edits):
        edits.set_cell(0, "id", 10)

        assert edits.key_predicate(edits.rows[0]) == {"id": IntValue(value=1)}

    def test_unknown_row_or_column(self, edits):
        with pytest.raises(IndexError):
            edits.set_cell(5, "name", "x")
        with pytest.raises(KeyError):
            edits.set_cell(0, "missing", "x")

    def test_negative_index_is_rejected(self, edits):
        with pytest.raises(IndexError):
            edits.set_cell(-1, "name", "x")
        with pytest.raises(IndexError):
            edits.delete_row(-1)

        assert edits.rows[1].state is RowState.UNCHANGED
        assert edits.rows[1].values["name"] == edits.rows[1].original["name"]
        with pytest.raises(KeyError):
            edits.add_row({"missing": 1})

    def test_deleted_row_cannot_be_edited(self, edits):
        edits.delete_row(0)

        with pytest.raises(ValueError):
            edits.set_cell(0, "name", "x")

    def test_add_row(self, edits):
        index = edits.add_row({"name": "cat"})

        row = edits.rows[index]
        assert index == 2
        assert row.state is RowState.ADDED
        assert edits.insert_values(row) == {"name": TextValue(value="cat")}

    def test_edit_added_row_stays_added(self, edits):
        index = edits.add_row()

        edits.set_cell(index, "name", "dan")

        assert edits.rows[index].state is RowState.ADDED

    def test_deleting_added_row_removes_it(self, edits):
        index = edits.add_row({"name": "tmp"})

        edits.delete_row(index)

        assert len(edits.rows) == 2
        assert not edits.has_changes

    def test_delete_marks_loaded_row(self, edits):
        edits.delete_row(1)

        assert edits.rows_in_state(RowState.DELETED) == [edits.rows[1]]

    def test_mark_applied(self, edits):
        edits.set_cell(0, "name", "anne")
        edits.delete_row(1)

        edits.mark_applied(edits.rows[0])
        edits.mark_applied(edits.rows[1])

        assert len(edits.rows) == 1
        assert edits.rows[0].original["name"] == TextValue(value="anne")
        assert not edits.has_changes


class TestReadOnlyTable:
    """Tables without a primary key can be viewed but never edited."""

    @pytest.fixture
    def read_only(self):
        session = EditSession("public", "logs")
        session.load([{"line": "a"}], primary_keys=[])
        return session

    def test_not_editable(self, read_only):
        assert not read_only.editable

    def test_every_mutation_rejected(self, read_only):
        with pytest.raises(NoPrimaryKey, match="public.logs"):
            read_only.set_cell(0, "line", "b")
        with pytest.raises(NoPrimaryKey):
            read_only.add_row()
        with pytest.raises(NoPrimaryKey):
            read_only.delete_row(0)
        assert read_only.rows[0].state is RowState.UNCHANGED
