"""
Catalog queries used by the CatalogReader.

Every query reads pg_catalog directly and takes its filters as bound
parameters. Templates carry a ``{where}`` slot filled by
:class:`CatalogFilter`.
"""

from typing import Any, List, Optional, Tuple

SYSTEM_SCHEMAS = ("pg_catalog", "information_schema")

_USER_SCHEMA = "{alias}.nspname NOT IN ('pg_catalog', 'information_schema') AND {alias}.nspname NOT LIKE 'pg\\_toast%'"


def user_schema_condition(alias: str = "n") -> str:
    return _USER_SCHEMA.format(alias=alias)


class CatalogFilter:
    """
    Accumulates WHERE conditions and their parameters.

    Blank filter values are ignored so "no schema selected" and "all
    schemas" are the same request.
    """

    def __init__(self, *conditions: str):
        self.conditions: List[str] = list(conditions)
        self.args: List[Any] = []

    def equals(self, column: str, value: Optional[str]) -> "CatalogFilter":
        if value is None or not str(value).strip():
            return self
        self.args.append(value)
        self.conditions.append(f"{column} = ${len(self.args)}")
        return self

    def where_clause(self) -> str:
        if not self.conditions:
            return ""
        return "WHERE " + "\n  AND ".join(self.conditions)

    def render(self, template: str) -> Tuple[str, List[Any]]:
        return template.format(where=self.where_clause()), self.args


TABLES_QUERY = """
SELECT
    n.nspname AS schema_name,
    c.relname AS name,
    obj_description(c.oid, 'pg_class') AS comment,
    pg_total_relation_size(c.oid) AS size,
    COALESCE(s.n_live_tup, 0) AS row_count
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_catalog.pg_stat_user_tables s ON s.relid = c.oid
{where}
ORDER BY n.nspname, c.relname
"""

COLUMNS_QUERY = """
SELECT
    a.attname AS name,
    format_type(et.oid, NULL) AS data_type,
    NOT a.attnotnull AS is_nullable,
    pg_get_expr(d.adbin, d.adrelid) AS default_value,
    col_description(c.oid, a.attnum) AS comment,
    CASE
        WHEN a.atttypmod > 0 AND et.typname IN ('varchar', 'bpchar') THEN a.atttypmod - 4
        WHEN a.atttypmod > 0 AND et.typname IN ('bit', 'varbit') THEN a.atttypmod
    END AS max_length,
    CASE WHEN t.typcategory = 'A' THEN GREATEST(a.attndims, 1) END AS array_dimensions
FROM pg_catalog.pg_attribute a
JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
JOIN pg_catalog.pg_type t ON t.oid = a.atttypid
JOIN pg_catalog.pg_type et ON et.oid = CASE WHEN t.typcategory = 'A' THEN t.typelem ELSE t.oid END
LEFT JOIN pg_catalog.pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
WHERE n.nspname = $1
  AND c.relname = $2
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""

PRIMARY_KEY_QUERY = """
SELECT a.attname AS column_name
FROM pg_catalog.pg_index i
JOIN pg_catalog.pg_class c ON c.oid = i.indrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
CROSS JOIN LATERAL unnest(i.indkey::smallint[]) WITH ORDINALITY AS k(attnum, ord)
JOIN pg_catalog.pg_attribute a ON a.attrelid = c.oid AND a.attnum = k.attnum
WHERE i.indisprimary
  AND n.nspname = $1
  AND c.relname = $2
ORDER BY k.ord
"""

FOREIGN_KEY_QUERY = """
SELECT
    a.attname AS column_name,
    fn.nspname || '.' || fc.relname AS foreign_table,
    fa.attname AS foreign_column
FROM pg_catalog.pg_constraint con
JOIN pg_catalog.pg_class c ON c.oid = con.conrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
JOIN pg_catalog.pg_class fc ON fc.oid = con.confrelid
JOIN pg_catalog.pg_namespace fn ON fn.oid = fc.relnamespace
CROSS JOIN LATERAL unnest(con.conkey, con.confkey) AS k(attnum, fattnum)
JOIN pg_catalog.pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
JOIN pg_catalog.pg_attribute fa ON fa.attrelid = con.confrelid AND fa.attnum = k.fattnum
WHERE con.contype = 'f'
  AND n.nspname = $1
  AND c.relname = $2
ORDER BY con.conname, a.attnum
"""

INDEXES_QUERY = """
SELECT
    i.relname AS name,
    n.nspname AS schema_name,
    t.relname AS table_name,
    am.amname AS index_type,
    ix.indisunique AS is_unique,
    ix.indisprimary AS is_primary_key,
    pg_relation_size(i.oid) AS size,
    pg_get_expr(ix.indpred, ix.indrelid) AS partial_condition,
    pg_get_expr(ix.indexprs, ix.indrelid) AS expression,
    ARRAY(
        SELECT a.attname::text
        FROM unnest(ix.indkey::smallint[]) WITH ORDINALITY AS k(attnum, ord)
        JOIN pg_catalog.pg_attribute a ON a.attrelid = ix.indrelid AND a.attnum = k.attnum
        WHERE k.ord <= ix.indnkeyatts
        ORDER BY k.ord
    ) AS columns
FROM pg_catalog.pg_index ix
JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
JOIN pg_catalog.pg_am am ON am.oid = i.relam
{where}
ORDER BY n.nspname, t.relname, i.relname
"""

# tgtype bits: ROW=1 BEFORE=2 INSERT=4 DELETE=8 UPDATE=16 TRUNCATE=32 INSTEAD=64
TRIGGERS_QUERY = """
SELECT
    t.tgname AS name,
    n.nspname AS schema_name,
    c.relname AS table_name,
    pg_get_triggerdef(t.oid) AS definition,
    (t.tgtype::integer & 1) <> 0 AS is_row_level,
    CASE
        WHEN (t.tgtype::integer & 2) <> 0 THEN 'BEFORE'
        WHEN (t.tgtype::integer & 64) <> 0 THEN 'INSTEAD OF'
        ELSE 'AFTER'
    END AS timing,
    array_remove(ARRAY[
        CASE WHEN (t.tgtype::integer & 4) <> 0 THEN 'INSERT' END,
        CASE WHEN (t.tgtype::integer & 16) <> 0 THEN 'UPDATE' END,
        CASE WHEN (t.tgtype::integer & 8) <> 0 THEN 'DELETE' END,
        CASE WHEN (t.tgtype::integer & 32) <> 0 THEN 'TRUNCATE' END
    ], NULL) AS events,
    p.proname AS function_name,
    pn.nspname AS function_schema,
    t.tgenabled IN ('O', 'A') AS is_enabled
FROM pg_catalog.pg_trigger t
JOIN pg_catalog.pg_class c ON c.oid = t.tgrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
JOIN pg_catalog.pg_proc p ON p.oid = t.tgfoid
JOIN pg_catalog.pg_namespace pn ON pn.oid = p.pronamespace
{where}
ORDER BY n.nspname, c.relname, t.tgname
"""

POLICIES_QUERY = """
SELECT
    pol.policyname AS name,
    pol.schemaname AS schema_name,
    pol.tablename AS table_name,
    pol.permissive AS policy_type,
    pol.cmd AS command,
    array_to_string(pol.roles, ', ') AS role,
    pol.qual AS using_expression,
    pol.with_check AS with_check_expression,
    COALESCE(c.relrowsecurity, false) AS is_enabled
FROM pg_catalog.pg_policies pol
LEFT JOIN pg_catalog.pg_namespace n ON n.nspname = pol.schemaname
LEFT JOIN pg_catalog.pg_class c ON c.relnamespace = n.oid AND c.relname = pol.tablename
{where}
ORDER BY pol.schemaname, pol.tablename, pol.policyname
"""

FUNCTIONS_QUERY = """
SELECT
    n.nspname AS schema_name,
    p.proname AS name,
    COALESCE(pg_get_function_result(p.oid), 'void') AS return_type,
    pg_get_function_arguments(p.oid) AS arguments,
    pg_get_function_identity_arguments(p.oid) AS identity_arguments,
    CASE p.prokind
        WHEN 'p' THEN 'PROCEDURE'
        WHEN 'a' THEN 'AGGREGATE'
        ELSE 'FUNCTION'
    END AS function_type,
    p.proretset AS returns_set,
    l.lanname AS language,
    p.prosecdef AS is_security_definer,
    p.provolatile = 's' AS is_stable,
    CASE WHEN p.prokind IN ('f', 'p') THEN pg_get_functiondef(p.oid) END AS definition
FROM pg_catalog.pg_proc p
JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
JOIN pg_catalog.pg_language l ON l.oid = p.prolang
{where}
ORDER BY n.nspname, p.proname
"""

VIEWS_QUERY = """
SELECT
    n.nspname AS schema_name,
    c.relname AS name,
    pg_get_viewdef(c.oid, true) AS definition,
    obj_description(c.oid, 'pg_class') AS comment,
    c.relkind = 'm' AS is_materialized,
    (
        SELECT count(*)
        FROM pg_catalog.pg_attribute a
        WHERE a.attrelid = c.oid AND a.attnum > 0 AND NOT a.attisdropped
    ) AS column_count
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
{where}
ORDER BY n.nspname, c.relname
"""


def tables_query(schema: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter("c.relkind IN ('r', 'p')", user_schema_condition())
        .equals("n.nspname", schema)
        .render(TABLES_QUERY)
    )


def indexes_query(schema: Optional[str] = None, table: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter(user_schema_condition())
        .equals("n.nspname", schema)
        .equals("t.relname", table)
        .render(INDEXES_QUERY)
    )


def triggers_query(schema: Optional[str] = None, table: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter("NOT t.tgisinternal", user_schema_condition())
        .equals("n.nspname", schema)
        .equals("c.relname", table)
        .render(TRIGGERS_QUERY)
    )


def policies_query(schema: Optional[str] = None, table: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter("pol.schemaname NOT IN ('pg_catalog', 'information_schema')")
        .equals("pol.schemaname", schema)
        .equals("pol.tablename", table)
        .render(POLICIES_QUERY)
    )


def functions_query(schema: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter(user_schema_condition())
        .equals("n.nspname", schema)
        .render(FUNCTIONS_QUERY)
    )


def views_query(schema: Optional[str] = None) -> Tuple[str, List[Any]]:
    return (
        CatalogFilter("c.relkind IN ('v', 'm')", user_schema_condition())
        .equals("n.nspname", schema)
        .render(VIEWS_QUERY)
    )
