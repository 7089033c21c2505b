"""
repositories/article_repo.py
-----------------------------
Data access layer for articles.
Simple CRUD goes through the generic QueryBuilder; listing, search and
counters that need ordering, limits or JSON predicates use raw SQL.
"""

from datetime import datetime, timezone
from typing import Optional

from psycopg2.extras import Json

from db.columns import ColumnSpec
from db.connection import ConnectionHandle
from db.errors import DatabaseError, StoreError, UsageError, is_duplicate_error
from db.fulltext import render_search
from db.query import QueryBuilder, render_where
from db.schema import SchemaManager
from models.article import Article
from utils.logger import get_logger

logger = get_logger(__name__)

TABLE = "articles"

ARTICLE_COLUMNS = [
    ColumnSpec("id", "BIGINT", primary=True),
    ColumnSpec("title", "VARCHAR(255)", unique=True),
    ColumnSpec("excerpt", "TEXT", default="''"),
    ColumnSpec("author", "VARCHAR(255)"),
    ColumnSpec("date", "TIMESTAMPTZ", default="NOW()"),
    ColumnSpec("read_time", "INT", default="0"),
    ColumnSpec("likes", "INT", default="0"),
    ColumnSpec("comments", "INT", default="0"),
    ColumnSpec("views", "INT", default="0"),
    ColumnSpec("category", "VARCHAR(100)", default="''"),
    ColumnSpec("tags", "JSONB", default="'[]'::jsonb"),
    ColumnSpec("featured", "BOOLEAN", default="FALSE"),
    ColumnSpec("content", "TEXT", default="''"),
]

SEARCH_COLUMNS = ("title", "excerpt", "content")


class ArticleExistsError(DatabaseError):
    """An article with the same title already exists."""


class ArticleRepository:
    """Repository for CRUD operations on the articles table."""

    def __init__(self, handle: ConnectionHandle):
        self.handle = handle
        self.builder = QueryBuilder(handle)
        self.schema = SchemaManager(handle)

    def ensure_schema(self) -> None:
        """
        Create the articles table and its full-text index.
        Safe to call multiple times. A failure to build the index is
        logged only: search still works, just without the index.
        """
        self.schema.create_table(TABLE, ARTICLE_COLUMNS)
        try:
            self.schema.ensure_fulltext_index(TABLE, SEARCH_COLUMNS)
        except StoreError as e:
            logger.error(f"Failed to create full-text index: {e}")

    # ── CREATE ────────────────────────────────────────────

    def add(self, article: Article) -> Article:
        """
        Insert a new article.

        Returns:
            The same Article with `id` (and `date`, if unset) populated.

        Raises:
            UsageError: If the title is empty.
            ArticleExistsError: If the title is already taken.
        """
        if not article.title:
            raise UsageError("Article title must not be empty")
        if article.date is None:
            article.date = datetime.now(timezone.utc)
        try:
            article.id = self.builder.insert(TABLE, article.to_fields())
        except StoreError as e:
            if is_duplicate_error(e):
                raise ArticleExistsError(f"Article already exists: {article.title!r}") from e
            logger.error(f"Failed to add article: {e}")
            raise
        logger.info(f"Added article #{article.id} '{article.title}'")
        return article

    # ── READ ──────────────────────────────────────────────

    def get_by_id(self, article_id: int) -> Optional[Article]:
        """Fetch a single article, or None if not found."""
        with self.builder.select(TABLE, where={"id": article_id}) as rows:
            row = rows.fetchone()
        return Article.from_row(row) if row else None

    def list_articles(
        self,
        limit: int,
        offset: int = 0,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        featured_only: bool = False,
    ) -> list[Article]:
        """
        Page through articles, newest first.

        Args:
            limit: Maximum number of articles.
            offset: Number of articles to skip.
            category: Only this category.
            tag: Only articles carrying this tag.
            featured_only: Only featured articles.
        """
        filters = {}
        if category:
            filters["category"] = category
        if featured_only:
            filters["featured"] = True

        sql = f"SELECT * FROM {TABLE}"
        clauses, params = [], []
        if filters:
            clause, params = render_where(filters)
            clauses.append(clause)
        if tag:
            clauses.append("tags @> %s")
            params.append(Json([tag]))
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY date DESC, id DESC LIMIT %s OFFSET %s"
        params += [limit, offset]
        return self._fetch(sql, params)

    def recent(self, limit: int) -> list[Article]:
        return self.list_articles(limit)

    def featured(self, limit: int) -> list[Article]:
        return self.list_articles(limit, featured_only=True)

    def by_category(self, category: str, limit: int) -> list[Article]:
        return self.list_articles(limit, category=category)

    def search(self, text: str, limit: int = 20) -> list[Article]:
        """Full-text search over title, excerpt and content, best match first."""
        if not text.strip():
            return []
        stmt = render_search(TABLE, SEARCH_COLUMNS, text, limit)
        try:
            return self._fetch(stmt.sql, stmt.params)
        except StoreError as e:
            logger.error(f"Article search failed: {e}")
            raise

    # ── UPDATE ────────────────────────────────────────────

    def update(self, article: Article) -> bool:
        """
        Overwrite an existing article.

        Returns:
            True if a row was updated, False otherwise.
        """
        if not article.id:
            raise UsageError("Article id is required for update")
        try:
            updated = self.builder.update(TABLE, article.to_fields(), {"id": article.id}) > 0
        except StoreError as e:
            if is_duplicate_error(e):
                raise ArticleExistsError(f"Article already exists: {article.title!r}") from e
            logger.error(f"Failed to update article #{article.id}: {e}")
            raise
        return updated

    def increment_views(self, article_id: int) -> bool:
        return self.builder.increment(TABLE, "views", {"id": article_id}) > 0

    def increment_likes(self, article_id: int) -> bool:
        return self.builder.increment(TABLE, "likes", {"id": article_id}) > 0

    def increment_comments(self, article_id: int) -> bool:
        return self.builder.increment(TABLE, "comments", {"id": article_id}) > 0

    # ── DELETE ────────────────────────────────────────────

    def delete(self, article_id: int) -> bool:
        """
        Delete an article by ID.

        Returns:
            True if a row was deleted, False otherwise.
        """
        if not article_id:
            raise UsageError("Article id is required for delete")
        deleted = self.builder.delete(TABLE, {"id": article_id}) > 0
        if deleted:
            logger.info(f"Deleted article #{article_id}")
        return deleted

    # ── HELPERS ───────────────────────────────────────────

    def _fetch(self, sql: str, params: list) -> list[Article]:
        with self.builder.query(sql, params) as rows:
            return [Article.from_row(row) for row in rows]
