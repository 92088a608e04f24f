"""
Typed, immutable descriptions of database objects built from catalog rows.
"""

from pydantic import BaseModel, ConfigDict


class Descriptor(BaseModel):
    model_config = ConfigDict(frozen=True)


class TableDescriptor(Descriptor):
    schema_name: str
    name: str
    comment: str | None = None
    size: int | None = None
    row_count: int | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


class ColumnDescriptor(Descriptor):
    name: str
    data_type: str
    is_nullable: bool = True
    default_value: str | None = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    foreign_table: str | None = None
    foreign_column: str | None = None
    comment: str | None = None
    max_length: int | None = None
    # For array columns data_type is the element type.
    array_dimensions: int | None = None


class IndexDescriptor(Descriptor):
    name: str
    schema_name: str
    table_name: str
    index_type: str = "btree"
    is_unique: bool = False
    is_primary_key: bool = False
    columns: tuple[str, ...] = ()
    expression: str | None = None
    is_partial: bool = False
    partial_condition: str | None = None
    size: int | None = None

    @property
    def key_columns(self) -> tuple[str, ...]:
        """Plain key columns; empty when the index is over an expression."""
        if self.expression:
            return ()
        return self.columns

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}.{self.name}"


class TriggerDescriptor(Descriptor):
    name: str
    schema_name: str
    table_name: str
    timing: str
    events: tuple[str, ...]
    function_name: str
    function_schema: str | None = None
    is_row_level: bool = True
    is_enabled: bool = True
    definition: str | None = None

    @property
    def event(self) -> str:
        return " OR ".join(self.events)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}.{self.name}"


class PolicyDescriptor(Descriptor):
    name: str
    schema_name: str
    table_name: str
    policy_type: str = "PERMISSIVE"
    command: str = "ALL"
    role: str = "public"
    using_expression: str | None = None
    with_check_expression: str | None = None
    is_enabled: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}.{self.name}"


class FunctionParameter(Descriptor):
    name: str
    type: str
    default_value: str | None = None
    mode: str = "IN"


class FunctionDescriptor(Descriptor):
    schema_name: str
    name: str
    return_type: str
    parameters: tuple[FunctionParameter, ...] = ()
    function_type: str = "FUNCTION"
    returns_set: bool = False
    language: str = "sql"
    is_security_definer: bool = False
    is_stable: bool = False
    definition: str | None = None
    identity_arguments: str | None = None

    @property
    def qualified_name(self) -> str:
        if self.identity_arguments is not None:
            return f"{self.schema_name}.{self.name}({self.identity_arguments})"
        return f"{self.schema_name}.{self.name}"


class ViewDescriptor(Descriptor):
    schema_name: str
    name: str
    definition: str | None = None
    comment: str | None = None
    is_materialized: bool = False
    column_count: int = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"
