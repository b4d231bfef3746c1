"""
Workhub Database Configuration.

Builds the async SQLAlchemy engine and the SQLModel session factory.
Nothing is created at import time: the FastAPI lifespan (or a test fixture)
owns the engine and disposes it on shutdown.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

engine_kwargs = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def normalize_database_url(database_url: str) -> str:
    """Ensure usage of the asyncpg driver for PostgreSQL URLs."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    return database_url


def build_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """
    Create the async engine.

    Pool sizing only applies to server databases on the default pool.
    """
    url = normalize_database_url(database_url)
    kwargs: Dict[str, Any] = {}
    if not url.startswith("sqlite") and "poolclass" not in overrides:
        kwargs.update(engine_kwargs)
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
