"""
Postboard Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for each failure a request can hit.
How:   Each exception carries a message and optional context dict. Global
       exception handlers (registered in main.py) catch these and return
       structured JSON error responses with the matching HTTP status code.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    PostboardError (base)
    ├── ValidationError              → 400 Bad Request
    ├── ConflictError                → 400 Bad Request (username taken)
    ├── AuthenticationError          → 401 Unauthorized
    │   └── InvalidCredentialsError  → 401 {"auth": false, "token": null}
    ├── PermissionDeniedError        → 403 Forbidden
    ├── NotFoundError                → 404 Not Found
    └── DatabaseError                → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class PostboardError(Exception):
    """
    Base exception for all Postboard application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PostboardError):
    """
    Raised when client input fails a business rule.

    When:    Unknown username at login, token identity differs from the
             supplied userId, post creation for a user that does not exist.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConflictError(PostboardError):
    """
    Raised when a create would duplicate a unique value.

    When:    Signup with a username that is already registered.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Username has been taken",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AuthenticationError(PostboardError):
    """
    Raised when the caller cannot be identified.

    When:    Missing Authorization header, malformed header, token that is
             malformed, signed with another key, expired, or lacks claims.
    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Access denied",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidCredentialsError(AuthenticationError):
    """
    Raised by login when the password does not match the stored hash.

    HTTP:    401 Unauthorized with body {"auth": false, "token": null}
    """

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid username or password", context=context)


class PermissionDeniedError(PostboardError):
    """
    Raised when an authenticated caller mutates a post owned by someone else.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not own this post",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PostboardError):
    """
    Raised when a requested resource does not exist.

    When:    PUT/DELETE /posts/{id} with an id that matches no row.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(PostboardError):
    """
    Raised when database operations fail unexpectedly.

    When:    Connection lost mid-query, constraint violation, deadlock, etc.
    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. The driver error
    goes into `context` and the server log only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
