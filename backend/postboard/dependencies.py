"""
Postboard Backend — Request Dependencies
=========================================

What:  FastAPI dependencies shared by the routers.
How:   Services built by create_app() live on `app.state`; these helpers hand
       them to route handlers via Depends().
"""

from typing import Optional

from fastapi import Depends, Header, Request

from postboard.schemas.auth import TokenClaims
from postboard.services.auth_service import AuthService, extract_bearer_token


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """
    Resolve the caller's identity from the Authorization header.

    The header's presence is checked before anything is parsed out of it.

    Raises:
        AuthenticationError: header missing or malformed, token invalid or expired
    """
    token = extract_bearer_token(authorization)
    return auth_service.verify_token(token)
