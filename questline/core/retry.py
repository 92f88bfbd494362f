"""
Retry with exponential backoff for transient persistence failures.

Used at the repository boundary so the progress tracker never sees a
connection blip, only a final PersistenceUnavailable.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as SQLTimeoutError

from questline.core.config import settings
from questline.core.exceptions import PersistenceUnavailable

logger = structlog.get_logger()

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 30.0


def is_transient_error(error: BaseException) -> bool:
    """
    Check if an error is a connection/pool/timeout problem worth retrying.

    Args:
        error: Exception to check

    Returns:
        True if the operation may succeed when retried
    """
    if isinstance(error, (OperationalError, SQLTimeoutError)):
        return True
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True
    if isinstance(error, (asyncio.TimeoutError, ConnectionError, RedisConnectionError)):
        return True
    return False


def backoff_delay(retry_count: int) -> float:
    """Seconds to wait before retry number `retry_count` (1-based)."""
    delay = settings.persistence_backoff_base_seconds * (
        settings.persistence_backoff_factor ** (retry_count - 1)
    )
    return min(delay, MAX_BACKOFF_SECONDS)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    operation_name: str,
    on_retry: Optional[Callable[[], Awaitable[Any]]] = None,
    max_retries: Optional[int] = None,
) -> T:
    """
    Run an async operation, retrying transient failures with backoff.

    Args:
        operation: Zero-argument coroutine factory
        operation_name: Name used in log records
        on_retry: Optional cleanup awaited before each retry (e.g. session rollback)
        max_retries: Override for settings.persistence_max_retries

    Returns:
        The operation's result

    Raises:
        PersistenceUnavailable: Transient failures outlasted all retries
        Exception: Non-transient errors propagate unchanged
    """
    retries = settings.persistence_max_retries if max_retries is None else max_retries
    retry_count = 0

    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_transient_error(e):
                raise

            if retry_count >= retries:
                logger.error(
                    "Persistence unavailable, max retries reached",
                    operation=operation_name,
                    retry_count=retry_count,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise PersistenceUnavailable(
                    f"{operation_name} failed after {retry_count} retries",
                    operation=operation_name,
                ) from e

            retry_count += 1
            wait_seconds = backoff_delay(retry_count)
            logger.warning(
                "Transient persistence error, retrying",
                operation=operation_name,
                retry_count=retry_count,
                wait_seconds=wait_seconds,
                error=str(e),
            )
            if on_retry is not None:
                try:
                    await on_retry()
                except Exception as cleanup_error:
                    logger.debug("Retry cleanup failed", error=str(cleanup_error))
            await asyncio.sleep(wait_seconds)
