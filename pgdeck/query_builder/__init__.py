from pgdeck.query_builder.builder import (
    SelectQuery,
    InsertQuery,
    UpdateQuery,
    DeleteQuery,
    TextCast,
    affected_rows,
    select_rows,
    insert,
    update,
    delete,
)
from pgdeck.query_builder.identifiers import quote_ident, quote_qualified, quote_literal, validate_identifier

__all__ = [
    "SelectQuery",
    "InsertQuery",
    "UpdateQuery",
    "DeleteQuery",
    "TextCast",
    "affected_rows",
    "select_rows",
    "insert",
    "update",
    "delete",
    "quote_ident",
    "quote_qualified",
    "quote_literal",
    "validate_identifier",
]
