"""
Postboard Backend — Database Engine & Session Management
=========================================================

What:  Async SQLAlchemy engine construction, session factory, and the FastAPI
       session dependency.
How:   create_app() builds one engine (and its connection pool) per application
       instance and stores it on `app.state`. Each request borrows a session
       through get_db_session(), which commits on success, rolls back on error
       and always returns the connection to the pool.

Connection Pooling:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour

    When the pool is saturated, acquiring a session waits for a connection to
    be released. SQLite URLs (used in tests) skip the sizing arguments.
"""

from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from postboard.config import Settings
from postboard.exceptions import DatabaseError


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object between the models and Alembic's autogenerate.
    """
    pass


def build_engine(app_settings: Settings) -> AsyncEngine:
    """
    Create the async engine (and its connection pool) for the given settings.

    Returns: AsyncEngine; no connection is opened until first use.
    """
    url = make_url(app_settings.database_url)
    options: Dict[str, Any] = {
        "pool_pre_ping": app_settings.db_pool_pre_ping,
        # Echo SQL only when debugging
        "echo": app_settings.log_level == "DEBUG",
    }

    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=app_settings.db_pool_size,
            max_overflow=app_settings.db_max_overflow,
            pool_recycle=3600,
        )

    connect_args = ssl_connect_args(app_settings)
    if connect_args:
        options["connect_args"] = connect_args

    return create_async_engine(url, **options)


def ssl_connect_args(app_settings: Settings) -> Dict[str, Any]:
    """
    Driver arguments that enforce TLS when DB_SSL_REQUIRE is set.

    Only asyncpg understands `ssl="require"`; other drivers get nothing.
    """
    url = make_url(app_settings.database_url)
    if app_settings.db_ssl_require and url.get_driver_name() == "asyncpg":
        return {"ssl": "require"}
    return {}


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False: ORM objects stay readable after commit, so the
    response models can be built from them without another round trip.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory on app.state
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session (returns connection to pool)

    Routes must declare it with scope="function" so the commit runs when the
    handler returns, before the response starts. A failed commit then
    surfaces as a 500 instead of a success the client already received.

    Example usage in a route:
        @router.get("/posts")
        async def list_posts(db: AsyncSession = Depends(get_db_session, scope="function")):
            ...
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError(context={"operation": "commit"}) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables known to Base.metadata (tests and local SQLite runs)."""
    # Model modules register their tables on import
    from postboard.models import post, user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine(engine: AsyncEngine) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
