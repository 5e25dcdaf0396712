"""
Postboard Backend — Auth Request/Response Schemas
==================================================

What:  Pydantic models for /auth/signup and /auth/login, plus the claims
       carried inside a bearer token.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """Body of POST /auth/signup and POST /auth/login."""
    username: str = Field(min_length=1, max_length=255, description="Account name")
    password: str = Field(min_length=1, description="Plaintext password (hashed server-side)")


class MessageResponse(BaseModel):
    """Returned by POST /auth/signup with HTTP 201."""
    message: str


class LoginResponse(BaseModel):
    """
    Returned by POST /auth/login.

    auth=true with a token on success; the 401 response for a wrong password
    uses the same shape with auth=false and token=null.
    """
    auth: bool
    token: Optional[str] = None


class TokenClaims(BaseModel):
    """Identity embedded in a signed bearer token."""
    id: int
    username: str
