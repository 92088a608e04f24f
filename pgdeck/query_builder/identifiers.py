"""
Quoting helpers for PostgreSQL identifiers and literals.

Names that come from the catalog or from the user are never interpolated
raw: they are validated and passed through :func:`quote_ident`, which
quotes anything that is not a plain lower-case word or that PostgreSQL
treats as a keyword. Values go through bound parameters;
:func:`quote_literal` exists only for DDL text that cannot carry
parameters (COMMENT ON ...).
"""

import re
from typing import Optional

from pglast.keywords import COL_NAME_KEYWORDS, RESERVED_KEYWORDS, TYPE_FUNC_NAME_KEYWORDS

MAX_IDENTIFIER_BYTES = 63

_SIMPLE_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_$]*$")

# Every keyword category except the unreserved one must be quoted to be used as a name.
QUOTED_KEYWORDS = frozenset(RESERVED_KEYWORDS | TYPE_FUNC_NAME_KEYWORDS | COL_NAME_KEYWORDS)


def validate_identifier(name: str) -> str:
    """
    Reject names PostgreSQL could never have produced.

    Raises:
        ValueError: empty name, embedded NUL, or longer than 63 bytes.
    """
    if name is None:
        raise ValueError("Identifier must not be None")
    text = str(name)
    if text == "":
        raise ValueError("Identifier must not be empty")
    if "\x00" in text:
        raise ValueError(f"Identifier contains a NUL character: {text!r}")
    if len(text.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
        raise ValueError(f"Identifier exceeds {MAX_IDENTIFIER_BYTES} bytes: {text!r}")
    return text


def needs_quoting(name: str) -> bool:
    return not _SIMPLE_IDENTIFIER.match(name) or name.lower() in QUOTED_KEYWORDS


def quote_ident(name: str) -> str:
    """Quote ``name`` when it is not a plain lower-case, non-reserved word."""
    text = validate_identifier(name)
    if not needs_quoting(text):
        return text
    return '"' + text.replace('"', '""') + '"'


def quote_qualified(schema: Optional[str], name: str) -> str:
    if schema:
        return f"{quote_ident(schema)}.{quote_ident(name)}"
    return quote_ident(name)


def quote_literal(value: str) -> str:
    if "\x00" in value:
        raise ValueError("String literal contains a NUL character")
    return "'" + value.replace("'", "''") + "'"
