"""
db/query.py
-----------
Deterministic SQL construction for insert/update/delete/select plus raw
passthrough.

Rendering is split from execution: the `render_*` functions are pure
and return a Statement, QueryBuilder sends Statements through a
ConnectionHandle. Field and filter maps are emitted in ascending key
order; filters are equality-only and joined with AND.
"""

from typing import Any, NamedTuple, Optional, Sequence

from db.connection import ConnectionHandle, ExecResult, RowCursor
from db.errors import StoreError, UsageError
from db.identifiers import validate_identifier
from db.values import FieldMap
from utils.logger import get_logger

logger = get_logger(__name__)


class Statement(NamedTuple):
    sql: str
    params: list


def render_where(where) -> tuple[str, list]:
    """Render an equality-AND predicate: ('a = %s AND b = %s', [..])."""
    where = FieldMap.of(where)
    clause = " AND ".join(f"{name} = %s" for name in where.keys())
    return clause, where.params()


def render_insert(table: str, fields, returning: Optional[str] = "id") -> Statement:
    """
    INSERT INTO table (a, b) VALUES (%s, %s) [RETURNING id]

    Raises:
        UsageError: If `fields` is empty.
    """
    validate_identifier(table, "table")
    fields = FieldMap.of(fields)
    if not fields:
        raise UsageError(f"No fields given for insert into {table}")
    columns = ", ".join(fields.keys())
    placeholders = ", ".join(["%s"] * len(fields))
    sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
    if returning:
        sql += f" RETURNING {validate_identifier(returning, 'column')}"
    return Statement(sql, fields.params())


def render_update(table: str, fields, where) -> Statement:
    """
    UPDATE table SET a = %s, b = %s WHERE c = %s AND d = %s

    Raises:
        UsageError: If `where` or `fields` is empty.
    """
    validate_identifier(table, "table")
    where = FieldMap.of(where)
    if not where:
        raise UsageError(f"Refusing to update {table} without a where clause")
    fields = FieldMap.of(fields)
    if not fields:
        raise UsageError(f"No fields given for update of {table}")
    set_clause = ", ".join(f"{name} = %s" for name in fields.keys())
    where_clause, where_params = render_where(where)
    sql = f"UPDATE {table} SET {set_clause} WHERE {where_clause}"
    return Statement(sql, fields.params() + where_params)


def render_increment(table: str, column: str, where, amount: int = 1) -> Statement:
    """UPDATE table SET col = col + %s WHERE ... (atomic in the store)."""
    validate_identifier(table, "table")
    validate_identifier(column, "column")
    where = FieldMap.of(where)
    if not where:
        raise UsageError(f"Refusing to update {table} without a where clause")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise UsageError(f"Increment amount must be an integer, got {amount!r}")
    where_clause, where_params = render_where(where)
    sql = f"UPDATE {table} SET {column} = {column} + %s WHERE {where_clause}"
    return Statement(sql, [amount] + where_params)


def render_delete(table: str, where) -> Statement:
    """
    DELETE FROM table WHERE a = %s AND b = %s

    Raises:
        UsageError: If `where` is empty.
    """
    validate_identifier(table, "table")
    where = FieldMap.of(where)
    if not where:
        raise UsageError(f"Refusing to delete from {table} without a where clause")
    where_clause, where_params = render_where(where)
    return Statement(f"DELETE FROM {table} WHERE {where_clause}", where_params)


def render_select(table: str, columns: Optional[Sequence[str]] = None, where=None) -> Statement:
    """SELECT cols|* FROM table [WHERE a = %s AND ...]"""
    validate_identifier(table, "table")
    cols = ", ".join(validate_identifier(c, "column") for c in columns) if columns else "*"
    sql = f"SELECT {cols} FROM {table}"
    params: list = []
    where = FieldMap.of(where)
    if where:
        where_clause, params = render_where(where)
        sql += f" WHERE {where_clause}"
    return Statement(sql, params)


class QueryBuilder:
    """
    Parameterized CRUD over arbitrary tables.

    Every method checks its inputs before touching the handle, so a
    usage error never leaves a partial side effect.
    """

    def __init__(self, handle: ConnectionHandle):
        self.handle = handle

    def _run(self, stmt: Statement, operation: str) -> ExecResult:
        try:
            return self.handle.exec(stmt.sql, stmt.params)
        except StoreError as e:
            raise StoreError(operation, e.original) from e

    def insert(self, table: str, fields, returning: Optional[str] = "id") -> Optional[Any]:
        """
        Insert one row.

        Returns:
            The value of the `returning` column of the new row (the
            generated id by default), or None when `returning` is None.
        """
        stmt = render_insert(table, fields, returning)
        result = self._run(stmt, f"insert into {table} failed")
        if returning and result.row is not None:
            return result.row[returning]
        return None

    def update(self, table: str, fields, where) -> int:
        """Update matching rows and return how many were affected."""
        stmt = render_update(table, fields, where)
        return self._run(stmt, f"update of {table} failed").rowcount

    def increment(self, table: str, column: str, where, amount: int = 1) -> int:
        """Atomically add `amount` to a counter column; returns affected rows."""
        stmt = render_increment(table, column, where, amount)
        return self._run(stmt, f"increment of {table}.{column} failed").rowcount

    def delete(self, table: str, where) -> int:
        """Delete matching rows and return how many were affected."""
        stmt = render_delete(table, where)
        return self._run(stmt, f"delete from {table} failed").rowcount

    def select(self, table: str, columns: Optional[Sequence[str]] = None, where=None) -> RowCursor:
        """
        Select rows with an optional equality filter.

        Returns:
            A RowCursor; close it (or use `with`) once done.
        """
        stmt = render_select(table, columns, where)
        try:
            return self.handle.query(stmt.sql, stmt.params)
        except StoreError as e:
            raise StoreError(f"select from {table} failed", e.original) from e

    # ── Raw passthrough ───────────────────────────────────

    def exec(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecResult:
        return self.handle.exec(sql, params)

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> RowCursor:
        return self.handle.query(sql, params)

    def query_row(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[dict]:
        return self.handle.query_row(sql, params)
