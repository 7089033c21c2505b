"""
db/fulltext.py
--------------
SQL for full-text search on top of the pg_trgm extension.

The searchable columns are concatenated into one document expression
and indexed with a trigram GIN index (see SchemaManager). Trigrams do
not depend on whitespace word boundaries, so matching works for scripts
such as Chinese or Japanese as well as for space-separated languages.
"""

import hashlib
from typing import Sequence

from db.errors import UsageError
from db.identifiers import MAX_IDENTIFIER_LENGTH, validate_identifier
from db.query import Statement

_INDEX_PREFIX = "idx_"
_INDEX_SUFFIX = "_fulltext"


def fulltext_index_name(table: str) -> str:
    """
    Deterministic name of the full-text index of `table`.

    Names that would pass the identifier limit keep a table prefix and
    get a short hash of the full table name, so they stay unique.
    """
    validate_identifier(table, "table")
    name = f"{_INDEX_PREFIX}{table}{_INDEX_SUFFIX}"
    if len(name) > MAX_IDENTIFIER_LENGTH:
        digest = hashlib.sha1(table.encode()).hexdigest()[:8]
        keep = MAX_IDENTIFIER_LENGTH - len(_INDEX_PREFIX) - len(_INDEX_SUFFIX) - len(digest) - 1
        name = f"{_INDEX_PREFIX}{table[:keep]}_{digest}{_INDEX_SUFFIX}"
    return validate_identifier(name, "index")


def document_expression(columns: Sequence[str]) -> str:
    """SQL expression concatenating the searchable text columns."""
    if not columns:
        raise UsageError("Full-text search needs at least one column")
    parts = [f"coalesce({validate_identifier(c, 'column')}, '')" for c in columns]
    return " || ' ' || ".join(parts)


def render_create_index(table: str, columns: Sequence[str]) -> str:
    """CREATE INDEX statement for the trigram index of `table`."""
    name = fulltext_index_name(table)
    doc = document_expression(columns)
    return f"CREATE INDEX {name} ON {table} USING gin (({doc}) gin_trgm_ops)"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def render_search(table: str, columns: Sequence[str], text: str, limit: int) -> Statement:
    """
    Relevance-ranked search over the document expression.

    Matches rows containing `text` as a substring or sharing enough
    trigrams with it, best matches first.
    """
    validate_identifier(table, "table")
    doc = document_expression(columns)
    sql = (
        f"SELECT * FROM {table} "
        f"WHERE ({doc}) ILIKE %s OR %s <%% ({doc}) "
        f"ORDER BY word_similarity(%s, ({doc})) DESC "
        f"LIMIT %s"
    )
    return Statement(sql, [f"%{_escape_like(text)}%", text, text, limit])
