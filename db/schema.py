"""
db/schema.py
------------
Idempotent table creation and full-text index provisioning.
"""

from typing import Sequence

from psycopg2 import errors

from db.columns import ColumnSpec
from db.connection import ConnectionHandle
from db.errors import StoreError, UsageError
from db.fulltext import fulltext_index_name, render_create_index
from db.identifiers import validate_identifier
from utils.logger import get_logger

logger = get_logger(__name__)

# Errors a concurrent creator of the same index (or extension) can cause.
_RACE_ERRORS = (errors.UniqueViolation, errors.DuplicateTable, errors.DuplicateObject)


def render_create_table(name: str, columns: Sequence[ColumnSpec]) -> str:
    """
    Build a CREATE TABLE IF NOT EXISTS statement.

    Raises:
        UsageError: If `columns` is empty or repeats a column name.
    """
    validate_identifier(name, "table")
    if not columns:
        raise UsageError(f"No columns given for table {name}")
    seen = set()
    for col in columns:
        if col.name in seen:
            raise UsageError(f"Duplicate column {col.name!r} in table {name}")
        seen.add(col.name)
    body = ",\n  ".join(col.definition() for col in columns)
    return f"CREATE TABLE IF NOT EXISTS {name} (\n  {body}\n)"


class SchemaManager:
    """Creates tables and indexes through a ConnectionHandle."""

    def __init__(self, handle: ConnectionHandle):
        self.handle = handle

    def create_table(self, name: str, columns: Sequence[ColumnSpec]) -> None:
        """
        Create `name` with the given columns unless it already exists.
        Safe to call repeatedly with the same schema.
        """
        sql = render_create_table(name, columns)
        try:
            self.handle.exec(sql)
        except StoreError as e:
            logger.error(f"Failed to create table {name}: {e.original}")
            raise StoreError(f"creation of table {name} failed", e.original) from e
        logger.info(f"Table {name} is ready.")

    def drop_table(self, name: str) -> None:
        validate_identifier(name, "table")
        try:
            self.handle.exec(f"DROP TABLE IF EXISTS {name}")
        except StoreError as e:
            raise StoreError(f"drop of table {name} failed", e.original) from e

    def table_exists(self, name: str) -> bool:
        row = self.handle.query_row(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s",
            [validate_identifier(name, "table")],
        )
        return row is not None

    def index_exists(self, table: str, index: str) -> bool:
        row = self.handle.query_row(
            "SELECT 1 FROM pg_indexes "
            "WHERE schemaname = current_schema() AND tablename = %s AND indexname = %s",
            [validate_identifier(table, "table"), validate_identifier(index, "index")],
        )
        return row is not None

    def ensure_fulltext_index(self, table: str, columns: Sequence[str]) -> bool:
        """
        Create the trigram full-text index of `table` unless it exists.

        The check and the creation are separate statements, so two processes
        starting together can both try to create it. The loser's duplicate
        error is logged and ignored.

        Returns:
            True if this call created the index.

        Raises:
            StoreError: For any failure other than a duplicate-creation race.
        """
        name = fulltext_index_name(table)
        create = render_create_index(table, columns)
        try:
            exists = self.index_exists(table, name)
        except StoreError as e:
            raise StoreError("full-text index lookup failed", e.original) from e
        if exists:
            return False

        try:
            self.handle.exec("CREATE EXTENSION IF NOT EXISTS pg_trgm")
            self.handle.exec(create)
        except StoreError as e:
            if isinstance(e.original, _RACE_ERRORS):
                logger.warning(f"Full-text index {name} was created concurrently: {e.original}")
                return False
            raise StoreError("full-text index provisioning failed", e.original) from e
        logger.info(f"Created full-text index {name} on {table} ({', '.join(columns)})")
        return True
