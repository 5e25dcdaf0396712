"""
Postboard Backend — Posts Route Handlers
=========================================

What:  CRUD endpoints for posts.

Route Inventory:
    GET    /posts              all posts
    GET    /posts/{user_id}    posts of one user (path value is a USER id)
    POST   /posts              create             (Bearer token)
    PUT    /posts/{post_id}    update             (Bearer token)
    DELETE /posts/{post_id}    delete             (Bearer token)

    GET /posts/{user_id} and PUT/DELETE /posts/{post_id} share a path shape
    but not a meaning: the GET filters by owner, the mutations address a post.
"""

import logging
from typing import Annotated, List

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from postboard.database import get_db_session
from postboard.dependencies import get_current_user
from postboard.schemas.auth import TokenClaims
from postboard.schemas.common import ErrorResponse
from postboard.schemas.post import (
    MAX_ID,
    PostCreate,
    PostDelete,
    PostDeleteResponse,
    PostResponse,
    PostUpdate,
    PostUpdateResponse,
)
from postboard.services.post_service import post_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["Posts"])

# Ids outside the INTEGER column range cannot exist; reject them as bad input
UserId = Annotated[int, Path(ge=1, le=MAX_ID, description="Owning user id")]
PostId = Annotated[int, Path(ge=1, le=MAX_ID, description="Post id")]

MUTATION_ERRORS = {
    400: {"description": "Invalid body or token/userId mismatch", "model": ErrorResponse},
    401: {"description": "Missing, invalid or expired token", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=List[PostResponse],
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List all posts",
)
async def list_posts(
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> List[PostResponse]:
    return await post_service.list_posts(db)


@router.get(
    "/{user_id}",
    response_model=List[PostResponse],
    responses={
        400: {"description": "Id out of range", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="List the posts of one user",
)
async def list_posts_by_user(
    user_id: UserId,
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> List[PostResponse]:
    return await post_service.list_posts_by_user(db, user_id)


@router.post(
    "",
    response_model=PostResponse,
    responses=MUTATION_ERRORS,
    summary="Create a post",
)
async def create_post(
    body: PostCreate,
    identity: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> PostResponse:
    return await post_service.create_post(db, identity, body)


@router.put(
    "/{post_id}",
    response_model=PostUpdateResponse,
    responses={
        **MUTATION_ERRORS,
        403: {"description": "Post belongs to another user", "model": ErrorResponse},
        404: {"description": "Post not found", "model": ErrorResponse},
    },
    summary="Update a post",
)
async def update_post(
    post_id: PostId,
    body: PostUpdate,
    identity: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> PostUpdateResponse:
    updated = await post_service.update_post(db, identity, post_id, body)
    return PostUpdateResponse(updated_post=updated)


@router.delete(
    "/{post_id}",
    response_model=PostDeleteResponse,
    responses={
        **MUTATION_ERRORS,
        403: {"description": "Post belongs to another user", "model": ErrorResponse},
        404: {"description": "Post not found", "model": ErrorResponse},
    },
    summary="Delete a post",
)
async def delete_post(
    post_id: PostId,
    body: PostDelete = Body(...),
    identity: TokenClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session, scope="function"),
) -> PostDeleteResponse:
    deleted = await post_service.delete_post(db, identity, post_id, body.user_id)
    return PostDeleteResponse(deleted_post=deleted)
