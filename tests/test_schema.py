"""Tests for ColumnSpec rendering, SchemaManager and full-text provisioning."""

import psycopg2
import pytest

from db.columns import ColumnSpec
from db.connection import ExecResult
from db.errors import InvalidIdentifierError, StoreError, UsageError
from db.fulltext import document_expression, fulltext_index_name, render_search
from db.schema import SchemaManager, render_create_table


class TestColumnSpec:
    def test_primary_key_gets_identity_suffix_only(self):
        col = ColumnSpec("id", "BIGINT", primary=True, unique=True, default="1")
        assert col.definition() == "id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"

    def test_clause_order(self):
        col = ColumnSpec("title", "VARCHAR(255)", unique=True, default="''")
        assert col.definition() == "title VARCHAR(255) NOT NULL UNIQUE DEFAULT ''"

    def test_nullable_column(self):
        assert ColumnSpec("excerpt", "TEXT", nullable=True).definition() == "excerpt TEXT"

    def test_type_and_default_pass_through(self):
        col = ColumnSpec("date", "TIMESTAMPTZ", default="NOW()")
        assert col.definition() == "date TIMESTAMPTZ NOT NULL DEFAULT NOW()"

    def test_name_is_validated(self):
        with pytest.raises(InvalidIdentifierError):
            ColumnSpec("bad name", "TEXT")


class TestCreateTable:
    columns = [
        ColumnSpec("id", "BIGINT", primary=True),
        ColumnSpec("title", "VARCHAR(255)", unique=True),
        ColumnSpec("tags", "JSONB", nullable=True),
    ]

    def test_render(self):
        assert render_create_table("articles", self.columns) == (
            "CREATE TABLE IF NOT EXISTS articles (\n"
            "  id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,\n"
            "  title VARCHAR(255) NOT NULL UNIQUE,\n"
            "  tags JSONB\n"
            ")"
        )

    def test_empty_columns_rejected(self, handle):
        with pytest.raises(UsageError):
            SchemaManager(handle).create_table("articles", [])
        assert handle.statements == []

    def test_duplicate_columns_rejected(self, handle):
        cols = [ColumnSpec("a", "INT"), ColumnSpec("a", "TEXT")]
        with pytest.raises(UsageError):
            SchemaManager(handle).create_table("t", cols)
        assert handle.statements == []

    def test_repeated_calls_issue_the_same_idempotent_statement(self, handle):
        schema = SchemaManager(handle)
        schema.create_table("articles", self.columns)
        schema.create_table("articles", self.columns)
        first, second = handle.sql
        assert first == second
        assert first.startswith("CREATE TABLE IF NOT EXISTS articles")

    def test_store_failure_is_wrapped(self, handle):
        original = psycopg2.errors.SyntaxError("syntax error")
        handle.exec_results.append(StoreError("statement execution failed", original))
        with pytest.raises(StoreError) as excinfo:
            SchemaManager(handle).create_table("articles", self.columns)
        assert excinfo.value.operation == "creation of table articles failed"
        assert excinfo.value.original is original

    def test_table_exists(self, handle):
        handle.query_results.append([{"?column?": 1}])
        handle.query_results.append([])
        schema = SchemaManager(handle)
        assert schema.table_exists("articles") is True
        assert schema.table_exists("missing") is False
        assert handle.statements[0][1] == ["articles"]

    def test_drop_table(self, handle):
        SchemaManager(handle).drop_table("articles")
        assert handle.sql == ["DROP TABLE IF EXISTS articles"]


class TestFullTextIndex:
    search_columns = ("title", "excerpt", "content")

    def test_index_name_is_table_scoped(self):
        assert fulltext_index_name("articles") == "idx_articles_fulltext"

    def test_document_expression(self):
        assert document_expression(["title", "content"]) == (
            "coalesce(title, '') || ' ' || coalesce(content, '')"
        )

    def test_document_expression_needs_columns(self):
        with pytest.raises(UsageError):
            document_expression([])

    def test_creates_index_when_missing(self, handle):
        handle.query_results.append([])
        created = SchemaManager(handle).ensure_fulltext_index("articles", self.search_columns)
        assert created is True
        lookup, extension, create = handle.statements
        assert "pg_indexes" in lookup[0]
        assert lookup[1] == ["articles", "idx_articles_fulltext"]
        assert extension[0] == "CREATE EXTENSION IF NOT EXISTS pg_trgm"
        assert create[0].startswith("CREATE INDEX idx_articles_fulltext ON articles USING gin")
        assert "gin_trgm_ops" in create[0]

    def test_skips_creation_when_present(self, handle):
        schema = SchemaManager(handle)
        handle.query_results.append([])
        schema.ensure_fulltext_index("articles", self.search_columns)
        handle.query_results.append([{"?column?": 1}])
        handle.query_results.append([{"?column?": 1}])
        assert schema.ensure_fulltext_index("articles", self.search_columns) is False
        assert schema.ensure_fulltext_index("articles", self.search_columns) is False
        creates = [s for s in handle.sql if s.startswith("CREATE INDEX")]
        assert len(creates) == 1

    @pytest.mark.parametrize(
        "race",
        [
            psycopg2.errors.DuplicateTable('relation "idx_articles_fulltext" already exists'),
            psycopg2.errors.UniqueViolation("duplicate key value violates unique constraint"),
        ],
    )
    def test_concurrent_creation_is_not_fatal(self, handle, race):
        handle.query_results.append([])
        handle.exec_results.extend([
            ExecResult(0, None),
            StoreError("statement execution failed", race),
        ])
        assert SchemaManager(handle).ensure_fulltext_index("articles", self.search_columns) is False

    def test_other_failures_propagate(self, handle):
        handle.query_results.append([])
        original = psycopg2.errors.UndefinedColumn('column "content" does not exist')
        handle.exec_results.append(StoreError("statement execution failed", original))
        with pytest.raises(StoreError) as excinfo:
            SchemaManager(handle).ensure_fulltext_index("articles", self.search_columns)
        assert excinfo.value.operation == "full-text index provisioning failed"

    def test_render_search_escapes_like_wildcards(self):
        stmt = render_search("articles", ["title"], "100%_off", 5)
        assert stmt.params == ["%100\\%\\_off%", "100%_off", "100%_off", 5]
        assert "ILIKE %s" in stmt.sql
        assert "<%% (coalesce(title, ''))" in stmt.sql
        assert stmt.sql.endswith("LIMIT %s")

    def test_lookup_is_the_index_exists_query(self, handle):
        schema = SchemaManager(handle)
        handle.query_results.append([{"?column?": 1}])
        handle.query_results.append([{"?column?": 1}])
        schema.index_exists("articles", "idx_articles_fulltext")
        schema.ensure_fulltext_index("articles", self.search_columns)
        direct, via_ensure = handle.statements
        assert direct == via_ensure

    def test_lookup_failure_is_wrapped(self, handle):
        original = psycopg2.OperationalError("server closed the connection unexpectedly")
        handle.query_results.append(StoreError("query execution failed", original))
        with pytest.raises(StoreError) as excinfo:
            SchemaManager(handle).ensure_fulltext_index("articles", self.search_columns)
        assert excinfo.value.operation == "full-text index lookup failed"
        assert excinfo.value.original is original
        assert handle.statements[1:] == []


class TestLongIndexNames:
    def test_long_table_name_fits_identifier_limit(self):
        table = "a" * 63
        name = fulltext_index_name(table)
        assert len(name) <= 63
        assert name.startswith("idx_aaaa")
        assert name.endswith("_fulltext")
        assert fulltext_index_name(table) == name

    def test_shared_prefix_tables_get_distinct_names(self):
        first = fulltext_index_name("article_" * 6 + "archive_2023")
        second = fulltext_index_name("article_" * 6 + "archive_2024")
        assert first != second
        assert max(len(first), len(second)) <= 63

    def test_name_at_the_limit_is_kept_verbatim(self):
        table = "t" * (63 - len("idx__fulltext"))
        assert fulltext_index_name(table) == f"idx_{table}_fulltext"

    def test_provisioning_a_long_table(self, handle):
        table = "b" * 60
        handle.query_results.append([])
        assert SchemaManager(handle).ensure_fulltext_index(table, ["title"]) is True
        name = fulltext_index_name(table)
        assert handle.statements[0][1] == [table, name]
        assert handle.sql[-1].startswith(f"CREATE INDEX {name} ON {table} USING gin")
