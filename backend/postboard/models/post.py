"""
Postboard Backend — Post SQLAlchemy Model
==========================================

What:  ORM model for the `posts` table.
Who:   PostService for every post operation; Alembic for schema management.

Table Design:
    - id: Integer identity, server-generated
    - author: Display name, free text (not derived from the owning user)
    - thumbnail: URL or any string the client stores; optional
    - user_id: Owning user. Checked against `users` at creation time only;
      there is no foreign key, so the schema does not enforce it afterwards.
    - created_at / updated_at: UTC, set by the server. updated_at is refreshed
      on every update.

    Index on user_id:
        Serves GET /posts/{user_id}, the only filtered query.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from postboard.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    """
    A blog post owned by a user.

    Lifecycle:
        1. Created by an authenticated caller for their own user id
        2. Updated in place by its owner (updated_at refreshed)
        3. Deleted by its owner; the API returns the pre-deletion snapshot
    """

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    author: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default=None)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_posts_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, user_id={self.user_id}, title='{self.title}')>"
