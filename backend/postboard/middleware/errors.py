"""
Postboard Backend — Unhandled Error Middleware
===============================================

What:  Turns any exception no handler claimed into a generic 500 body.
When:  Runs inside RequestIDMiddleware, so the log line, the body and the
       X-Request-ID header all carry the request's ID. Starlette's own
       fallback sits outside every middleware, after the ID is gone.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from postboard.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def unexpected_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": UNEXPECTED_ERROR_MESSAGE,
            "request_id": request_id_var.get(""),
        },
    )


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Catches what the route-level exception handlers let through."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.error(
                "[%s] Unexpected error on %s %s: %s",
                request_id_var.get(""), request.method, request.url.path, str(exc),
                exc_info=True,
            )
            return unexpected_error_response()
