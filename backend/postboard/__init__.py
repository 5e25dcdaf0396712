"""
Postboard Backend — Application Package Initializer
====================================================

What: Marks the `postboard` directory as a Python package.
Who:  Imported by uvicorn (`postboard.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← auth, posts, health
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← AuthService, PostService
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async engine owned by the app
    └─────────────────────────────────────┘

    Routes translate HTTP into service calls; services own every SQL statement
    and raise exceptions from `postboard.exceptions`, which the handlers in
    `postboard.main` turn into JSON error responses.
"""

__version__ = "1.0.0"
