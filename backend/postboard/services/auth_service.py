"""
Postboard Backend — Auth Service (Credentials & Tokens)
========================================================

What:  Signup, login, password hashing and bearer-token issue/verify.
How:   passlib's CryptContext (bcrypt) for one-way salted hashes, python-jose
       for HS256-signed JWTs carrying {id, username, exp}.
Who:   Called by routes/auth.py and by the get_current_user dependency.

Token Lifecycle:
    login() ──▶ issue_token(user) ──▶ client stores token
    client ──▶ "Authorization: Bearer <token>" ──▶ extract_bearer_token()
           ──▶ verify_token() ──▶ TokenClaims(id, username)

    Tokens are stateless: nothing is stored server-side, so a token stays
    valid until it expires (token_expire_seconds, default 24h).

Why bcrypt runs in the threadpool:
    A cost-12 bcrypt hash takes ~250ms of CPU. Running it on the event loop
    would stall every other in-flight request for that long.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from postboard.config import Settings
from postboard.exceptions import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    InvalidCredentialsError,
    ValidationError,
)
from postboard.models.user import User
from postboard.schemas.auth import TokenClaims

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Pull the raw token out of an Authorization header value.

    Accepts "Bearer <token>" (scheme is case-insensitive). Double quotes
    around the token are stripped: some clients keep the token JSON-encoded
    in local storage and send it quoted.

    Raises:
        AuthenticationError: header absent, wrong scheme, or empty token
    """
    if not authorization:
        raise AuthenticationError("Access denied: missing Authorization header")

    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        raise AuthenticationError("Access denied: expected a Bearer token")

    token = credentials.strip().replace('"', "")
    if not token:
        raise AuthenticationError("Access denied: empty bearer token")
    return token


class AuthService:
    """
    Credential service.

    Holds only immutable configuration (signing key, expiry, hash cost), so a
    single instance is shared by all requests of one application.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        token_expire_seconds: int = 86400,
        bcrypt_rounds: int = 12,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.token_expire_seconds = token_expire_seconds
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__default_rounds=bcrypt_rounds,
        )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "AuthService":
        return cls(
            secret_key=app_settings.secret_key,
            algorithm=app_settings.jwt_algorithm,
            token_expire_seconds=app_settings.token_expire_seconds,
            bcrypt_rounds=app_settings.bcrypt_rounds,
        )

    # ── Passwords ─────────────────────────────────────────────────────────

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        return self.pwd_context.verify(password, password_hash)

    # ── Tokens ────────────────────────────────────────────────────────────

    def issue_token(self, user_id: int, username: str, expires_in: Optional[int] = None) -> str:
        """
        Sign a token embedding the user's id and username.

        Args:
            expires_in: Lifetime in seconds; defaults to token_expire_seconds.
        """
        lifetime = self.token_expire_seconds if expires_in is None else expires_in
        claims = {
            "id": user_id,
            "username": username,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=lifetime),
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenClaims:
        """
        Check signature and expiry, then return the embedded identity.

        Raises:
            AuthenticationError: malformed, wrongly signed, expired, or
                                 missing the id/username claims
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected bearer token: %s", e)
            raise AuthenticationError(
                "Invalid or expired token",
                context={"reason": type(e).__name__},
            ) from e

        try:
            return TokenClaims.model_validate(payload)
        except PydanticValidationError as e:
            raise AuthenticationError("Token is missing identity claims") from e

    # ── Account Operations ────────────────────────────────────────────────

    async def signup(self, db: AsyncSession, username: str, password: str) -> User:
        """
        Register a new user.

        Raises:
            ConflictError: username already registered (→ 400)
            DatabaseError: query execution failed (→ 500)
        """
        try:
            result = await db.execute(select(User.id).where(User.username == username))
            if result.scalar_one_or_none() is not None:
                raise ConflictError("Username has been taken", context={"username": username})

            password_hash = await run_in_threadpool(self.hash_password, password)
            user = User(username=username, password_hash=password_hash)
            db.add(user)
            await db.flush()

        except IntegrityError as e:
            # Concurrent signup for the same name won the unique index
            raise ConflictError("Username has been taken", context={"username": username}) from e
        except SQLAlchemyError as e:
            logger.error("Database error during signup: %s", str(e))
            raise DatabaseError(context={"operation": "signup"}) from e

        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return user

    async def login(self, db: AsyncSession, username: str, password: str) -> str:
        """
        Check credentials and issue a bearer token.

        Raises:
            ValidationError:         unknown username (→ 400)
            InvalidCredentialsError: wrong password (→ 401 auth:false)
            DatabaseError:           query execution failed (→ 500)
        """
        try:
            result = await db.execute(select(User).where(User.username == username))
            user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", str(e))
            raise DatabaseError(context={"operation": "login"}) from e

        if user is None:
            raise ValidationError(
                "Username is incorrect or doesn't exist.",
                field="username",
            )

        password_valid = await run_in_threadpool(
            self.verify_password, password, user.password_hash
        )
        if not password_valid:
            logger.warning("Failed login for user id=%s", user.id)
            raise InvalidCredentialsError(context={"user_id": user.id})

        return self.issue_token(user.id, user.username)
