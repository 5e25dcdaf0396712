"""
Postboard Backend — Auth Route Handlers
========================================

What:  POST /auth/signup and POST /auth/login.
How:   Validates the JSON body, delegates to AuthService, shapes the response.

Responses:
    signup: 201 {"message"} | 400 username taken
    login:  200 {"auth": true, "token"} | 400 unknown user
            | 401 {"auth": false, "token": null}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from postboard.database import get_db_session
from postboard.dependencies import get_auth_service
from postboard.schemas.auth import Credentials, LoginResponse, MessageResponse
from postboard.schemas.common import ErrorResponse
from postboard.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=MessageResponse,
    responses={
        400: {"description": "Username taken or invalid body", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Register a new user",
)
async def signup(
    body: Credentials,
    db: AsyncSession = Depends(get_db_session, scope="function"),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.signup(db, body.username, body.password)
    return MessageResponse(message="User has been successfully registered")


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"description": "Unknown username", "model": ErrorResponse},
        401: {"description": "Wrong password", "model": LoginResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Exchange credentials for a bearer token",
)
async def login(
    body: Credentials,
    db: AsyncSession = Depends(get_db_session, scope="function"),
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """
    Check credentials and return a signed token valid for 24 hours.

    A wrong password raises InvalidCredentialsError, which the global handler
    renders as 401 {"auth": false, "token": null}.
    """
    token = await auth_service.login(db, body.username, body.password)
    return LoginResponse(auth=True, token=token)
