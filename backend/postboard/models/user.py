"""
Postboard Backend — User SQLAlchemy Model
==========================================

What:  ORM model for the `users` table.
Who:   AuthService (signup/login) and PostService (existence check on create).

Lifecycle:
    Created at signup when the username is unused. Never updated or deleted.
    The `password` column only ever holds a bcrypt hash.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from postboard.database import Base


class User(Base):
    """A registered account."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    # Column keeps the historical name "password"; the attribute says what it holds
    password_hash: Mapped[str] = mapped_column("password", String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
