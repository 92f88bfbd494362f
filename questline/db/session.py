"""
Database session management.

Provides async session factory and dependency injection for FastAPI.
"""
from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from questline.core.config import settings
from questline.core.exceptions import QuestlineError

logger = structlog.get_logger()


def build_engine(database_url: str | None = None, application_name: str = "questline_api") -> AsyncEngine:
    """
    Create an async engine with pool settings suited to the backend.

    SQLite (local development and tests) takes no pool or server settings;
    PostgreSQL gets a bounded pool and statement timeouts.
    """
    url = database_url or settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.api_debug}

    if url.startswith("postgresql"):
        kwargs.update(
            pool_pre_ping=True,  # Verify connections before using them
            pool_size=20,
            max_overflow=30,
            pool_recycle=1800,
            pool_timeout=20,
            connect_args={
                "server_settings": {
                    "statement_timeout": "25000",  # milliseconds
                    "idle_in_transaction_session_timeout": "300000",
                    "application_name": application_name,
                },
                "command_timeout": 25,  # asyncpg command timeout (seconds)
            },
        )

    return create_async_engine(url, **kwargs)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine()
async_session_maker = build_session_maker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides an async database session.

    Repositories commit their own transitions; anything left pending when
    the request finishes is committed here.

    Usage:
        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except QuestlineError:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.error(
                "Database session error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
