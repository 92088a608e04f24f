"""
DDL text generation from descriptors.

Output is deterministic for a given descriptor. Identifiers are quoted only
where PostgreSQL requires it and comment text is emitted as an escaped string
literal. Expressions read back from the catalog (defaults, index
expressions, policy conditions, view bodies) are already valid SQL and are
emitted as-is.
"""

import re
from typing import Iterable, Optional, Sequence

from pgdeck.introspection.descriptors import (
    ColumnDescriptor,
    FunctionDescriptor,
    IndexDescriptor,
    PolicyDescriptor,
    TableDescriptor,
    TriggerDescriptor,
    ViewDescriptor,
)
from pgdeck.query_builder.identifiers import quote_ident, quote_literal, quote_qualified

BOUNDED_LENGTH_TYPES = frozenset(
    ["CHARACTER VARYING", "VARCHAR", "CHARACTER", "CHAR", "BIT VARYING", "VARBIT", "BIT"]
)

_CREATE_ROUTINE = re.compile(r"^(\s*)CREATE\s+(FUNCTION|PROCEDURE)\b", re.IGNORECASE)


def format_data_type(column: ColumnDescriptor) -> str:
    """
    Render a column type for DDL.

    The base type is upper-cased unless it contains a quoted identifier.
    Bounded-length types get their length, then one ``[]`` per array
    dimension is appended: ``CHARACTER VARYING(50)[]``.
    """
    data_type = column.data_type.strip()
    if '"' not in data_type:
        data_type = data_type.upper()

    if column.max_length is not None and column.max_length > 0 and data_type in BOUNDED_LENGTH_TYPES:
        data_type = f"{data_type}({column.max_length})"

    if column.array_dimensions:
        data_type += "[]" * column.array_dimensions

    return data_type


def _format_roles(role: str) -> str:
    names = [r.strip() for r in role.split(",") if r.strip()]
    if not names:
        return "PUBLIC"
    return ", ".join("PUBLIC" if name.lower() == "public" else quote_ident(name) for name in names)


def _strip_statement(text: str) -> str:
    return text.strip().rstrip(";").rstrip()


class DdlSynthesizer:
    def table_ddl(self, table: TableDescriptor, columns: Sequence[ColumnDescriptor]) -> str:
        target = quote_qualified(table.schema_name, table.name)
        primary_keys = [c.name for c in columns if c.is_primary_key]
        inline_key = len(primary_keys) == 1

        definitions = []
        for column in columns:
            parts = [quote_ident(column.name), format_data_type(column)]
            if column.is_primary_key and inline_key:
                parts.append("PRIMARY KEY")
            elif not column.is_nullable or column.is_primary_key:
                parts.append("NOT NULL")
            if column.default_value:
                parts.append(f"DEFAULT {column.default_value}")
            definitions.append("    " + " ".join(parts))

        if len(primary_keys) > 1:
            definitions.append("    PRIMARY KEY (" + ", ".join(quote_ident(k) for k in primary_keys) + ")")

        lines = [f"-- Table: {table.qualified_name}", f"CREATE TABLE IF NOT EXISTS {target} ("]
        lines.append(",\n".join(definitions))
        lines.append(");")

        for column in columns:
            if column.comment:
                lines.append(
                    f"COMMENT ON COLUMN {target}.{quote_ident(column.name)} IS {quote_literal(column.comment)};"
                )
        if table.comment:
            lines.append(f"COMMENT ON TABLE {target} IS {quote_literal(table.comment)};")

        return "\n".join(lines)

    def index_ddl(self, index: IndexDescriptor) -> str:
        unique = "UNIQUE " if index.is_unique else ""
        if index.expression:
            keys = index.expression
        else:
            keys = ", ".join(quote_ident(c) for c in index.columns)

        sql = (
            f"CREATE {unique}INDEX IF NOT EXISTS {quote_ident(index.name)} "
            f"ON {quote_qualified(index.schema_name, index.table_name)} "
            f"USING {index.index_type} ({keys})"
        )
        if index.is_partial and index.partial_condition:
            sql += f" WHERE {index.partial_condition}"
        return f"-- Index: {index.qualified_name}\n{sql};"

    def policy_ddl(self, policy: PolicyDescriptor) -> str:
        lines = [
            f"-- Policy: {policy.qualified_name}",
            f"CREATE POLICY {quote_ident(policy.name)}",
            f"ON {quote_qualified(policy.schema_name, policy.table_name)}",
            f"AS {policy.policy_type}",
        ]
        if policy.command.upper() != "ALL":
            lines.append(f"FOR {policy.command.upper()}")
        lines.append(f"TO {_format_roles(policy.role)}")
        if policy.using_expression:
            lines.append(f"USING ({policy.using_expression})")
        if policy.with_check_expression:
            lines.append(f"WITH CHECK ({policy.with_check_expression})")
        return "\n".join(lines) + ";"

    def trigger_ddl(self, trigger: TriggerDescriptor) -> str:
        lines = [
            f"-- Trigger: {trigger.qualified_name}",
            f"CREATE TRIGGER {quote_ident(trigger.name)}",
            f"{trigger.timing} {trigger.event}",
            f"ON {quote_qualified(trigger.schema_name, trigger.table_name)}",
        ]
        if trigger.is_row_level:
            lines.append("FOR EACH ROW")
        lines.append(f"EXECUTE FUNCTION {quote_qualified(trigger.function_schema, trigger.function_name)}();")
        return "\n".join(lines)

    def function_ddl(self, function: FunctionDescriptor) -> str:
        if function.definition and function.definition.strip():
            return _CREATE_ROUTINE.sub(r"\1CREATE OR REPLACE \2", function.definition, count=1)

        kind = "PROCEDURE" if function.function_type == "PROCEDURE" else "FUNCTION"
        params = []
        for param in function.parameters:
            text = f"{quote_ident(param.name)} {param.type}"
            if param.mode and param.mode != "IN":
                text = f"{param.mode} {text}"
            if param.default_value:
                text += f" DEFAULT {param.default_value}"
            params.append(text)

        lines = [
            f"-- Function: {function.qualified_name}",
            f"CREATE OR REPLACE {kind} {quote_qualified(function.schema_name, function.name)}(" + ", ".join(params) + ")",
        ]
        if kind == "FUNCTION":
            lines.append(f"RETURNS {function.return_type}")
        lines.append(f"LANGUAGE {function.language}")
        if function.is_security_definer:
            lines.append("SECURITY DEFINER")
        if function.is_stable:
            lines.append("STABLE")
        lines.extend(["AS $$", "    -- body not available", "$$;"])
        return "\n".join(lines)

    def view_ddl(self, view: ViewDescriptor) -> str:
        target = quote_qualified(view.schema_name, view.name)
        if view.is_materialized:
            header = f"CREATE MATERIALIZED VIEW IF NOT EXISTS {target} AS"
        else:
            header = f"CREATE OR REPLACE VIEW {target} AS"

        lines = [f"-- View: {view.qualified_name}", header]
        if view.definition and view.definition.strip():
            lines.append(_strip_statement(view.definition) + ";")
        else:
            lines.append("-- definition not available")
        if view.comment:
            kind = "MATERIALIZED VIEW" if view.is_materialized else "VIEW"
            lines.append(f"COMMENT ON {kind} {target} IS {quote_literal(view.comment)};")
        return "\n".join(lines)

    def drop_table(self, table: TableDescriptor, cascade: bool = False) -> str:
        return f"DROP TABLE IF EXISTS {quote_qualified(table.schema_name, table.name)}{_cascade(cascade)};"

    def drop_index(self, index: IndexDescriptor) -> str:
        return f"DROP INDEX IF EXISTS {quote_qualified(index.schema_name, index.name)};"

    def drop_policy(self, policy: PolicyDescriptor) -> str:
        return (
            f"DROP POLICY IF EXISTS {quote_ident(policy.name)} "
            f"ON {quote_qualified(policy.schema_name, policy.table_name)};"
        )

    def drop_trigger(self, trigger: TriggerDescriptor) -> str:
        return (
            f"DROP TRIGGER IF EXISTS {quote_ident(trigger.name)} "
            f"ON {quote_qualified(trigger.schema_name, trigger.table_name)};"
        )

    def drop_function(self, function: FunctionDescriptor, cascade: bool = False) -> str:
        if function.identity_arguments is not None:
            arguments = function.identity_arguments
        else:
            arguments = ", ".join(p.type for p in function.parameters if p.mode != "OUT")
        kind = {"PROCEDURE": "PROCEDURE", "AGGREGATE": "AGGREGATE"}.get(function.function_type, "FUNCTION")
        return (
            f"DROP {kind} IF EXISTS {quote_qualified(function.schema_name, function.name)}"
            f"({arguments}){_cascade(cascade)};"
        )

    def drop_view(self, view: ViewDescriptor, cascade: bool = False) -> str:
        kind = "MATERIALIZED VIEW" if view.is_materialized else "VIEW"
        return f"DROP {kind} IF EXISTS {quote_qualified(view.schema_name, view.name)}{_cascade(cascade)};"

    def synthesize(self, descriptor, columns: Optional[Iterable[ColumnDescriptor]] = None) -> str:
        """Generate the CREATE statement for any descriptor type."""
        if isinstance(descriptor, TableDescriptor):
            return self.table_ddl(descriptor, list(columns or []))
        if isinstance(descriptor, IndexDescriptor):
            return self.index_ddl(descriptor)
        if isinstance(descriptor, PolicyDescriptor):
            return self.policy_ddl(descriptor)
        if isinstance(descriptor, TriggerDescriptor):
            return self.trigger_ddl(descriptor)
        if isinstance(descriptor, FunctionDescriptor):
            return self.function_ddl(descriptor)
        if isinstance(descriptor, ViewDescriptor):
            return self.view_ddl(descriptor)
        raise TypeError(f"Cannot generate DDL for {type(descriptor).__name__}")

    def drop(self, descriptor, cascade: bool = False) -> str:
        if isinstance(descriptor, TableDescriptor):
            return self.drop_table(descriptor, cascade)
        if isinstance(descriptor, IndexDescriptor):
            return self.drop_index(descriptor)
        if isinstance(descriptor, PolicyDescriptor):
            return self.drop_policy(descriptor)
        if isinstance(descriptor, TriggerDescriptor):
            return self.drop_trigger(descriptor)
        if isinstance(descriptor, FunctionDescriptor):
            return self.drop_function(descriptor, cascade)
        if isinstance(descriptor, ViewDescriptor):
            return self.drop_view(descriptor, cascade)
        raise TypeError(f"Cannot generate DROP for {type(descriptor).__name__}")


def _cascade(cascade: bool) -> str:
    return " CASCADE" if cascade else ""
