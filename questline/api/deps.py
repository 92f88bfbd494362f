"""
API dependencies: caller identity and engine wiring.

SQL repositories are bound to the request's session. The notification hub
and the analytics event log are process-wide so WebSocket subscribers see
transitions made by any request.
"""
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from questline.core.config import settings
from questline.db.session import async_session_maker, get_db
from questline.repositories.badge_repo import SqlBadgeRepository
from questline.repositories.progress_repo import SqlProgressRepository
from questline.repositories.template_repo import SqlTemplateRepository
from questline.schemas.progress import OnboardingProgress
from questline.services.analytics import EventLog, LoggingEventSink, SqlEventSink
from questline.services.badge_catalog import BadgeCatalog, get_badge_catalog
from questline.services.badges import BadgeUnlockService
from questline.services.notifications import (
    InMemoryNotificationHub,
    NotificationPort,
    RedisProgressPublisher,
)
from questline.services.progress import ProgressTracker
from questline.services.templates import TemplateStore, get_template_cache


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Caller identity supplied by the upstream identity provider.

    Raises HTTPException 401 if the X-User-Id header is missing.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()


async def _load_progress(user_id: str) -> Optional[OnboardingProgress]:
    async with async_session_maker() as db:
        return await SqlProgressRepository(db).get(user_id)


@lru_cache
def get_notification_hub() -> InMemoryNotificationHub:
    return InMemoryNotificationHub(loader=_load_progress)


@lru_cache
def get_notifications() -> NotificationPort:
    """Process-wide notification port, bridged over Redis when enabled."""
    hub = get_notification_hub()
    if settings.redis_enabled:
        return RedisProgressPublisher(hub)
    return hub


@lru_cache
def get_event_log() -> EventLog:
    return EventLog([LoggingEventSink(), SqlEventSink(async_session_maker)])


def get_catalog() -> BadgeCatalog:
    return get_badge_catalog()


async def get_template_store(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TemplateStore:
    return TemplateStore(SqlTemplateRepository(db), cache=get_template_cache())


async def get_badge_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    catalog: Annotated[BadgeCatalog, Depends(get_catalog)],
) -> BadgeUnlockService:
    return BadgeUnlockService(SqlBadgeRepository(db), catalog)


async def get_progress_repository(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SqlProgressRepository:
    return SqlProgressRepository(db)


async def get_progress_tracker(
    progress_repo: Annotated[SqlProgressRepository, Depends(get_progress_repository)],
    templates: Annotated[TemplateStore, Depends(get_template_store)],
    badges: Annotated[BadgeUnlockService, Depends(get_badge_service)],
    notifications: Annotated[NotificationPort, Depends(get_notifications)],
    events: Annotated[EventLog, Depends(get_event_log)],
) -> ProgressTracker:
    return ProgressTracker(
        progress_repo=progress_repo,
        templates=templates,
        badges=badges,
        notifications=notifications,
        events=events,
    )


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Tracker = Annotated[ProgressTracker, Depends(get_progress_tracker)]
