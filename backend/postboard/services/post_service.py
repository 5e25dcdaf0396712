"""
Postboard Backend — Post Service (Business Logic)
==================================================

What:  Listing, creation, update and deletion of posts.
How:   Each operation is a short sequence of checks followed by one or two
       statements on the request's AsyncSession. Commit/rollback happen in
       get_db_session, so everything a call does lands in one transaction.
Who:   Called by routes/posts.py.

Authorization Rules (mutations):
    1. The caller's token identity must equal the userId in the body.
       Checked before any statement runs. Mismatch → ValidationError (400).
    2. update/delete: the stored post's user_id must equal the caller's
       identity. Mismatch → PermissionDeniedError (403).
    3. create: the userId must reference an existing user (400 otherwise).

Known Race:
    posts.user_id has no foreign key. create_post checks that the user exists
    and then inserts inside the same transaction, but nothing stops a
    concurrent transaction from removing that user in between. Users are never
    deleted by this service, so the window is only reachable from outside it.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from postboard.exceptions import (
    DatabaseError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from postboard.models.post import Post, utcnow
from postboard.models.user import User
from postboard.schemas.auth import TokenClaims
from postboard.schemas.post import PostCreate, PostResponse, PostUpdate

logger = logging.getLogger(__name__)


class PostService:
    """
    Business logic layer for post operations.

    Stateless: every method receives the session it works with.
    """

    @staticmethod
    def _ensure_identity(identity: TokenClaims, user_id: int) -> None:
        """Token identity must match the userId the caller claims to act as."""
        if identity.id != user_id:
            logger.warning(
                "Identity mismatch: token id=%s, body userId=%s", identity.id, user_id
            )
            raise ValidationError(
                "Invalid user: token does not belong to the supplied userId",
                field="userId",
            )

    @staticmethod
    def _ensure_owner(identity: TokenClaims, post: Post) -> None:
        if post.user_id != identity.id:
            raise PermissionDeniedError(
                context={"post_id": post.id, "owner_id": post.user_id, "caller_id": identity.id}
            )

    async def list_posts(self, db: AsyncSession) -> List[PostResponse]:
        """All posts, oldest first. No pagination."""
        try:
            result = await db.execute(select(Post).order_by(Post.id))
            return [PostResponse.model_validate(post) for post in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing posts: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve posts. Please try again.") from e

    async def list_posts_by_user(self, db: AsyncSession, user_id: int) -> List[PostResponse]:
        """Posts owned by `user_id`; empty list when the user has none (or does not exist)."""
        try:
            result = await db.execute(
                select(Post).where(Post.user_id == user_id).order_by(Post.id)
            )
            return [PostResponse.model_validate(post) for post in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error("Database error listing posts of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve posts. Please try again.",
                context={"user_id": user_id},
            ) from e

    async def create_post(
        self,
        db: AsyncSession,
        identity: TokenClaims,
        data: PostCreate,
    ) -> PostResponse:
        """
        Insert a post for the calling user.

        Raises:
            ValidationError: identity mismatch, or userId is not a known user
            DatabaseError:   query execution failed
        """
        self._ensure_identity(identity, data.user_id)

        try:
            result = await db.execute(select(User.id).where(User.id == data.user_id))
            if result.scalar_one_or_none() is None:
                raise ValidationError(
                    f"User with user_id: {data.user_id} does not exist. Please check the ID.",
                    field="userId",
                )

            now = utcnow()
            post = Post(
                author=data.author,
                title=data.title,
                content=data.content,
                thumbnail=data.thumbnail,
                user_id=data.user_id,
                created_at=now,
                updated_at=now,
            )
            db.add(post)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error creating post: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the post. Please try again.",
                context={"user_id": data.user_id},
            ) from e

        logger.info("Post %s created by user %s", post.id, post.user_id)
        return PostResponse.model_validate(post)

    async def update_post(
        self,
        db: AsyncSession,
        identity: TokenClaims,
        post_id: int,
        data: PostUpdate,
    ) -> PostResponse:
        """
        Apply the supplied fields to a post and refresh updated_at.

        Raises:
            ValidationError:       identity mismatch
            NotFoundError:         no post with this id
            PermissionDeniedError: post belongs to another user
            DatabaseError:         query execution failed
        """
        self._ensure_identity(identity, data.user_id)

        try:
            post = await db.get(Post, post_id)
            if post is None:
                raise NotFoundError(resource="post", resource_id=str(post_id))
            self._ensure_owner(identity, post)

            for field, value in data.changes().items():
                setattr(post, field, value)
            post.updated_at = utcnow()
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating post %s: %s", post_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the post. Please try again.",
                context={"post_id": post_id},
            ) from e

        logger.info("Post %s updated by user %s", post.id, identity.id)
        return PostResponse.model_validate(post)

    async def delete_post(
        self,
        db: AsyncSession,
        identity: TokenClaims,
        post_id: int,
        user_id: int,
    ) -> PostResponse:
        """
        Delete a post and return the row as it was before deletion.

        Raises:
            ValidationError:       identity mismatch
            NotFoundError:         no post with this id
            PermissionDeniedError: post belongs to another user
            DatabaseError:         query execution failed
        """
        self._ensure_identity(identity, user_id)

        try:
            post = await db.get(Post, post_id)
            if post is None:
                raise NotFoundError(resource="post", resource_id=str(post_id))
            self._ensure_owner(identity, post)

            snapshot = PostResponse.model_validate(post)
            await db.delete(post)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting post %s: %s", post_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the post. Please try again.",
                context={"post_id": post_id},
            ) from e

        logger.info("Post %s deleted by user %s", post_id, identity.id)
        return snapshot


post_service = PostService()
