# Middleware package init
"""
Postboard Backend — Middleware Package
=======================================

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Rate Limit] → [Unhandled Error]
            → [GZip] → [CORS] → Route

    - Request ID sets the correlation ID used by logging and error bodies
    - Logging records status and duration on the way back out
    - Rate Limit only looks at /auth/* and short-circuits with 429, which
      still carries a request ID and gets an access-log line
    - Unhandled Error renders unexpected exceptions as a 500 while the request
      ID is still set
"""
