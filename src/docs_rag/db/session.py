"""
Database Session Management

Builds the async SQLAlchemy engine and session factory for PostgreSQL.
Nothing is created at import time: the application constructs one engine at
startup, passes the session factory to the components that need it, and
disposes the engine at shutdown.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from ..config import settings


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async engine.

    ``command_timeout`` bounds every statement at the driver level so a hung
    connection cannot block a request forever.
    """
    return create_async_engine(
        database_url or settings.database_url,
        echo=False,  # Set True for SQL debugging
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        connect_args={"command_timeout": settings.db_timeout},
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
