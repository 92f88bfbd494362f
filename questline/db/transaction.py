"""
Transaction management utilities.

Provides a context manager for explicit transaction boundaries
so a progress transition is written all-or-nothing.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

logger = structlog.get_logger()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Execute operations atomically - all or nothing.

    Usage:
        async with atomic(db) as session:
            session.add(obj1)
            session.add(obj2)
            # Auto-commits on success, auto-rollbacks on exception

    Args:
        db: SQLAlchemy async session

    Yields:
        The same session for chaining

    Raises:
        Exception: Re-raises any exception after rollback
    """
    try:
        yield db
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.debug("Transaction rolled back", error=str(e), error_type=type(e).__name__)
        raise
