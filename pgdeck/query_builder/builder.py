"""
Statement builders for row-level reads and writes against arbitrary tables.

Every builder assembles a pglast AST and renders it with ``RawStream``, so
table and column names are quoted by the printer and every value becomes a
``$n`` parameter reference. Nothing the user types is spliced into SQL.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from pglast import ast, parse_sql
from pglast.enums import A_Expr_Kind, BoolExprType, LimitOption, NullTestType, SortByDir, SortByNulls
from pglast.parser import ParseError
from pglast.stream import RawStream

from pgdeck.logging_config import get_logger

sql_logger = get_logger("pgdeck.sql")


def select_rows(table: str, schema: Optional[str] = None) -> "SelectQuery":
    """
    Create a new SelectQuery over ``schema.table``.

    Args:
        table: Table name
        schema: Optional schema name

    Returns:
        SelectQuery: New SelectQuery instance
    """
    return SelectQuery(table, schema)


def insert(table: str, schema: Optional[str] = None) -> "InsertQuery":
    return InsertQuery(table, schema)


def update(table: str, schema: Optional[str] = None) -> "UpdateQuery":
    return UpdateQuery(table, schema)


def delete(table: str, schema: Optional[str] = None) -> "DeleteQuery":
    return DeleteQuery(table, schema)


class TextCast:
    """
    A value bound as text and converted by the server.

    Used when a user typed a string into a column whose type has no direct
    Python counterpart in the edit grid (numeric, uuid, json, enums...).
    ``type_name`` is a type expression as PostgreSQL prints it, for example
    ``pg_catalog.numeric`` or ``public."Mood"``.
    """

    __slots__ = ("value", "type_name")

    def __init__(self, value: str, type_name: str):
        self.value = value
        self.type_name = type_name

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TextCast)
            and other.value == self.value
            and other.type_name == self.type_name
        )

    def __repr__(self) -> str:
        return f"TextCast({self.value!r}, {self.type_name!r})"


def affected_rows(status: Optional[str]) -> int:
    """
    Row count from an asyncpg command status such as ``UPDATE 3`` or
    ``INSERT 0 1``. Unknown statuses count as zero.
    """
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


def _column(name: str) -> ast.ColumnRef:
    return ast.ColumnRef(fields=[ast.String(sval=name)])


def _type_name(type_name: str) -> ast.TypeName:
    """Parse a printed type expression into a TypeName node."""
    try:
        statements = parse_sql(f"SELECT NULL::{type_name}")
    except ParseError as e:
        raise ValueError(f"Invalid type name {type_name!r}: {e}") from e
    if len(statements) != 1:
        raise ValueError(f"Invalid type name {type_name!r}")
    target = statements[0].stmt.targetList[0].val
    if not isinstance(target, ast.TypeCast):
        raise ValueError(f"Invalid type name {type_name!r}")
    return target.typeName


def _text_cast(node: ast.Node, type_name: Optional[ast.TypeName] = None) -> ast.TypeCast:
    cast = ast.TypeCast(arg=node, typeName=ast.TypeName(names=[ast.String(sval="text")], typemod=-1))
    if type_name is None:
        return cast
    return ast.TypeCast(arg=cast, typeName=type_name)


class _Statement(ABC):
    def __init__(self, table: str, schema: Optional[str] = None):
        self.table = table
        self.schema = schema
        self._parameters: List[Any] = []
        self._parameter_counter = 0

    def _relation(self) -> ast.RangeVar:
        return ast.RangeVar(relname=self.table, schemaname=self.schema, inh=True)

    def _reset(self) -> None:
        self._parameters = []
        self._parameter_counter = 0

    def _add_parameter(self, value: Any) -> ast.Node:
        """Add a parameter and return its reference node."""
        self._parameter_counter += 1
        if isinstance(value, TextCast):
            self._parameters.append(value.value)
            return _text_cast(ast.ParamRef(number=self._parameter_counter), _type_name(value.type_name))
        self._parameters.append(value)
        return ast.ParamRef(number=self._parameter_counter)

    def _build_where(self, conditions: List[Tuple[str, Any]]) -> ast.Node:
        nodes = []
        for column, value in conditions:
            if value is None:
                nodes.append(ast.NullTest(arg=_column(column), nulltesttype=NullTestType.IS_NULL))
            else:
                nodes.append(
                    ast.A_Expr(
                        kind=A_Expr_Kind.AEXPR_OP,
                        name=[ast.String(sval="=")],
                        lexpr=_column(column),
                        rexpr=self._add_parameter(value),
                    )
                )
        if len(nodes) == 1:
            return nodes[0]
        return ast.BoolExpr(boolop=BoolExprType.AND_EXPR, args=nodes)

    @abstractmethod
    def _build_stmt(self) -> ast.Node:
        """Build the statement AST, registering parameters as they are met."""

    def build(self) -> Tuple[str, List[Any]]:
        """
        Build the statement.

        Returns:
            Tuple[str, List[Any]]: SQL string and parameter list
        """
        self._reset()
        stmt = self._build_stmt()
        sql = RawStream()(stmt)
        return sql, self._parameters

    async def execute(self, conn) -> str:
        """Run the statement on ``conn`` and return the command status."""
        sql, parameters = self.build()
        sql_logger.info("%s %r", sql, parameters)
        return await conn.execute(sql, *parameters)

    def __str__(self) -> str:
        sql, _ = self.build()
        return sql

    def __repr__(self) -> str:
        sql, params = self.build()
        return f"{type(self).__name__}(sql='{sql}', params={params})"


class SelectQuery(_Statement):
    """
    Query builder for paging through, counting and searching table rows.
    """

    def __init__(self, table: str, schema: Optional[str] = None):
        super().__init__(table, schema)
        self._order_by: List[str] = []
        self._order_by_position = False
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._search: Optional[Tuple[str, str]] = None
        self._count = False

    def order_by(self, *cols: str) -> "SelectQuery":
        """Order by the given columns, or by the first output column when none are given."""
        if cols:
            self._order_by.extend(cols)
        else:
            self._order_by_position = True
        return self

    def limit(self, count: int) -> "SelectQuery":
        if count < 0:
            raise ValueError("LIMIT must not be negative")
        self._limit = count
        return self

    def offset(self, count: int) -> "SelectQuery":
        if count < 0:
            raise ValueError("OFFSET must not be negative")
        self._offset = count
        return self

    def contains(self, column: str, term: str) -> "SelectQuery":
        """Keep rows whose ``column``, rendered as text, contains ``term``."""
        self._search = (column, term)
        return self

    def count(self) -> "SelectQuery":
        self._count = True
        return self

    def _build_target_list(self) -> List[ast.ResTarget]:
        if self._count:
            return [ast.ResTarget(val=ast.FuncCall(funcname=[ast.String(sval="count")], agg_star=True))]
        return [ast.ResTarget(val=ast.ColumnRef(fields=[ast.A_Star()]))]

    def _build_order_by(self) -> Optional[List[ast.SortBy]]:
        if self._order_by:
            nodes = [_column(c) for c in self._order_by]
        elif self._order_by_position:
            nodes = [ast.A_Const(val=ast.Integer(ival=1))]
        else:
            return None
        return [
            ast.SortBy(node=node, sortby_dir=SortByDir.SORTBY_DEFAULT, sortby_nulls=SortByNulls.SORTBY_NULLS_DEFAULT)
            for node in nodes
        ]

    def _build_stmt(self) -> ast.SelectStmt:
        where_clause = None
        if self._search is not None:
            column, term = self._search
            where_clause = ast.A_Expr(
                kind=A_Expr_Kind.AEXPR_ILIKE,
                name=[ast.String(sval="~~*")],
                lexpr=_text_cast(_column(column)),
                rexpr=self._add_parameter("%" + _escape_like(term) + "%"),
            )

        sort_clause = None
        limit_count = None
        limit_offset = None
        limit_option = None
        if not self._count:
            sort_clause = self._build_order_by()
            if self._limit is not None:
                limit_count = self._add_parameter(self._limit)
                limit_option = LimitOption.LIMIT_OPTION_COUNT
            if self._offset is not None:
                limit_offset = self._add_parameter(self._offset)

        return ast.SelectStmt(
            targetList=self._build_target_list(),
            fromClause=[self._relation()],
            whereClause=where_clause,
            sortClause=sort_clause,
            limitCount=limit_count,
            limitOffset=limit_offset,
            limitOption=limit_option,
        )


class InsertQuery(_Statement):
    """
    Query builder for single-row INSERT statements.

    With no values the statement becomes ``INSERT ... DEFAULT VALUES``.
    """

    def __init__(self, table: str, schema: Optional[str] = None):
        super().__init__(table, schema)
        self._values: List[Tuple[str, Any]] = []

    def value(self, column: str, value: Any) -> "InsertQuery":
        self._values.append((column, value))
        return self

    @property
    def columns(self) -> List[str]:
        return [column for column, _ in self._values]

    def _build_stmt(self) -> ast.InsertStmt:
        if not self._values:
            return ast.InsertStmt(relation=self._relation())

        cols = [ast.ResTarget(name=column) for column in self.columns]
        values = [self._add_parameter(value) for _, value in self._values]
        return ast.InsertStmt(
            relation=self._relation(),
            cols=cols,
            selectStmt=ast.SelectStmt(valuesLists=[values]),
        )


class UpdateQuery(_Statement):
    """
    Query builder for UPDATE statements keyed by column equality.
    """

    def __init__(self, table: str, schema: Optional[str] = None):
        super().__init__(table, schema)
        self._set_clauses: List[Tuple[str, Any]] = []
        self._where: List[Tuple[str, Any]] = []

    def set(self, column: str, value: Any) -> "UpdateQuery":
        self._set_clauses.append((column, value))
        return self

    def where_equals(self, column: str, value: Any) -> "UpdateQuery":
        self._where.append((column, value))
        return self

    def _build_stmt(self) -> ast.UpdateStmt:
        if not self._set_clauses:
            raise ValueError("UPDATE requires at least one SET clause")
        if not self._where:
            raise ValueError("UPDATE requires a WHERE clause")

        target_list = [
            ast.ResTarget(name=column, val=self._add_parameter(value))
            for column, value in self._set_clauses
        ]
        return ast.UpdateStmt(
            relation=self._relation(),
            targetList=target_list,
            whereClause=self._build_where(self._where),
        )


class DeleteQuery(_Statement):
    """
    Query builder for DELETE statements keyed by column equality.
    """

    def __init__(self, table: str, schema: Optional[str] = None):
        super().__init__(table, schema)
        self._where: List[Tuple[str, Any]] = []

    def where_equals(self, column: str, value: Any) -> "DeleteQuery":
        self._where.append((column, value))
        return self

    def _build_stmt(self) -> ast.DeleteStmt:
        if not self._where:
            raise ValueError("DELETE requires a WHERE clause")
        return ast.DeleteStmt(relation=self._relation(), whereClause=self._build_where(self._where))


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
