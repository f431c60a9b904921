"""
RecipeShare Backend - Database Engine & Session Factory
=========================================================

What:  Async SQLAlchemy engine, session factory, and declarative base.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling and a session factory.
       The RecipeStore opens one session (and one transaction) per operation
       from this factory; sessions are never shared between invocations.
Who:   Used by RecipeStore, the health check and Alembic.
When:  Engine is created at module import; sessions are created per operation.

Connection Pooling Strategy:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour

    SQLite URLs (used by the test suite) get the dialect's default pool,
    which does not accept the sizing arguments.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from recipeshare.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for `database_url`.

    Pool sizing only applies to server databases; SQLite manages its own pool.
    """
    options: Dict[str, Any] = {
        # Echo SQL queries in DEBUG mode for development visibility
        "echo": settings.log_level == "DEBUG",
    }
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = build_engine(settings.database_url)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: recipe rows returned by the store stay readable
# after their transaction has committed and the session is closed.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every model registers with this metadata, which Alembic reads for
    autogenerated migrations and the test suite uses for create_all().
    """
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
