"""
Shared utilities for Celery tasks.

Provides database session management and async execution for tasks.
"""
import asyncio
from typing import Any, Coroutine

from questline.db.session import build_engine, build_session_maker


def create_task_session_maker():
    """
    Create a new async engine and session maker for the current event loop.

    Each task creates its own engine to avoid sharing a connection pool
    across the event loops run_async creates.

    Returns:
        Tuple of (async_sessionmaker, engine). The engine should be disposed
        after use to free resources.
    """
    engine = build_engine(application_name="questline_worker")
    return build_session_maker(engine), engine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run async function in sync context (for Celery tasks).

    asyncio.run() creates a fresh event loop, runs the coroutine to
    completion and closes the loop.

    Args:
        coro: Async coroutine to execute.

    Returns:
        Result of the coroutine execution.
    """
    return asyncio.run(coro)
