"""
models/article.py
-----------------
Domain model for blog articles.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


def _decode_tags(raw: Any) -> list[str]:
    """JSONB arrives parsed from psycopg2; JSON text is decoded here."""
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    return [str(tag) for tag in raw]


@dataclass
class Article:
    """
    Represents a single published article.

    Attributes:
        id: Database primary key (None for new records).
        title: Unique headline.
        excerpt: Short summary shown in listings.
        author: Author display name.
        date: Publication timestamp.
        read_time: Estimated reading time in minutes.
        likes, comments, views: Counters, only changed atomically.
        category: Single category name.
        tags: Free-form tag list, stored as JSONB.
        featured: Shown in the featured section.
        content: Full article body.
    """
    title: str
    author: str
    excerpt: str = ""
    content: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    featured: bool = False
    read_time: int = 0
    likes: int = 0
    comments: int = 0
    views: int = 0
    date: Optional[datetime] = None
    id: Optional[int] = None

    def to_fields(self) -> dict:
        """
        Column values for insert/update payloads (everything but id).
        An unset date is left out so the column default applies.
        """
        fields = {
            "title": self.title,
            "excerpt": self.excerpt,
            "author": self.author,
            "date": self.date,
            "read_time": self.read_time,
            "likes": self.likes,
            "comments": self.comments,
            "views": self.views,
            "category": self.category,
            "tags": list(self.tags),
            "featured": self.featured,
            "content": self.content,
        }
        if fields["date"] is None:
            del fields["date"]
        return fields

    @classmethod
    def from_row(cls, row: dict) -> "Article":
        """Build an Article from a row dict returned by the db layer."""
        return cls(
            id=row["id"],
            title=row["title"],
            excerpt=row["excerpt"] or "",
            author=row["author"],
            date=row["date"],
            read_time=row["read_time"],
            likes=row["likes"],
            comments=row["comments"],
            views=row["views"],
            category=row["category"],
            tags=_decode_tags(row["tags"]),
            featured=row["featured"],
            content=row["content"] or "",
        )

    def __str__(self) -> str:
        return f"#{self.id} {self.title} | {self.author} | {self.category or '-'}"
