"""
Postboard Backend — Post Request/Response Schemas
==================================================

What:  Pydantic models defining the posts API contract.
How:   Request bodies use the camelCase `userId` key clients already send;
       Python code reads it as `user_id`. Response rows keep the table's
       snake_case column names.

Design Decision:
    Schemas are separate from SQLAlchemy models so the API controls exactly
    which fields are exposed and how request bodies are validated.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Largest value an INTEGER id column holds
MAX_ID = 2**31 - 1


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class PostCreate(BaseModel):
    """Body of POST /posts."""
    author: str = Field(description="Display name shown on the post")
    title: str = Field(max_length=255)
    content: str
    thumbnail: Optional[str] = Field(default=None, description="Thumbnail URL")
    user_id: int = Field(alias="userId", description="Owning user; must match the token")

    model_config = {"populate_by_name": True}


class PostUpdate(BaseModel):
    """
    Body of PUT /posts/{id}.

    Only the fields present (and not null) in the body are written; omitted
    fields keep their stored values.
    """
    author: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = None
    thumbnail: Optional[str] = None
    user_id: int = Field(alias="userId")

    model_config = {"populate_by_name": True}

    def changes(self) -> dict:
        """Supplied post fields, without the caller's userId."""
        return self.model_dump(exclude_unset=True, exclude_none=True, exclude={"user_id"})


class PostDelete(BaseModel):
    """Body of DELETE /posts/{id}."""
    user_id: int = Field(alias="userId")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PostResponse(BaseModel):
    """One row of the posts table."""
    id: int
    author: str
    title: str
    content: str
    thumbnail: Optional[str] = None
    user_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """SQLite hands timestamps back without an offset; they are stored in UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class PostUpdateResponse(BaseModel):
    """Returned by PUT /posts/{id}."""
    status: str = "success"
    message: str = "Post has been updated"
    updated_post: PostResponse = Field(alias="updatedPost")

    model_config = {"populate_by_name": True}


class PostDeleteResponse(BaseModel):
    """Returned by DELETE /posts/{id}; deletedPost is the pre-deletion snapshot."""
    status: str = "success"
    message: str = "Post deleted successfully"
    deleted_post: PostResponse = Field(alias="deletedPost")

    model_config = {"populate_by_name": True}
