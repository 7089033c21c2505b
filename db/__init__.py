"""
db/ - Database Layer
====================
Generic PostgreSQL data access: pooled connection handles, idempotent
schema provisioning, parameterized CRUD over arbitrary tables, raw SQL
passthrough and duplicate-key classification.
This layer is the lowest in the architecture and has no dependencies on other layers
apart from the shared logger.
"""

from db.columns import ColumnSpec
from db.connection import ConnectionHandle, DBConfig, ExecResult, RowCursor
from db.errors import (
    DatabaseError,
    HandleClosedError,
    InvalidIdentifierError,
    StoreError,
    UnsupportedValueError,
    UsageError,
    is_duplicate_error,
)
from db.query import QueryBuilder, Statement
from db.schema import SchemaManager
from db.values import FieldMap

__all__ = [
    "ColumnSpec",
    "ConnectionHandle",
    "DBConfig",
    "ExecResult",
    "RowCursor",
    "DatabaseError",
    "HandleClosedError",
    "InvalidIdentifierError",
    "StoreError",
    "UnsupportedValueError",
    "UsageError",
    "is_duplicate_error",
    "QueryBuilder",
    "Statement",
    "SchemaManager",
    "FieldMap",
]
