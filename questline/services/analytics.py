"""
Onboarding analytics event log.

Lifecycle events (onboarding_started, step_completed, step_skipped,
quest_completed, badge_unlock_failed) are best-effort: record() schedules
the write on the running loop and returns at once. A failing sink is logged
and never surfaces to the transition that emitted the event.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questline.core.constants import OnboardingEventType
from questline.core.utils import utc_now
from questline.models.onboarding_event import OnboardingEventRecord

logger = structlog.get_logger()


@dataclass
class OnboardingEvent:
    user_id: str
    event_type: OnboardingEventType
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)


class EventSink(ABC):
    """Destination for analytics events."""

    @abstractmethod
    async def write(self, event: OnboardingEvent) -> None:
        """Persist or forward one event. May raise; the event log absorbs it."""


class LoggingEventSink(EventSink):
    """Writes events to the structured log."""

    async def write(self, event: OnboardingEvent) -> None:
        logger.info(
            "Onboarding event",
            user_id=event.user_id,
            event_type=event.event_type.value,
            **event.payload,
        )


class InMemoryEventSink(EventSink):
    """Keeps events in a list, for tests and local development."""

    def __init__(self):
        self.events: list[OnboardingEvent] = []

    async def write(self, event: OnboardingEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: OnboardingEventType) -> list[OnboardingEvent]:
        return [e for e in self.events if e.event_type == event_type]


class SqlEventSink(EventSink):
    """
    Stores events in the onboarding_events table.

    Uses its own short-lived session per event so analytics writes never
    share a transaction with the progress write that emitted them.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def write(self, event: OnboardingEvent) -> None:
        async with self.session_maker() as session:
            session.add(OnboardingEventRecord(
                user_id=event.user_id,
                event_type=event.event_type.value,
                payload=event.payload,
                created_at=event.occurred_at,
            ))
            await session.commit()


class EventLog:
    """
    Fire-and-forget fan-out of events to one or more sinks.

    Args:
        sinks: Sinks every event is written to
    """

    def __init__(self, sinks: Optional[Iterable[EventSink]] = None):
        self.sinks: list[EventSink] = list(sinks) if sinks is not None else [LoggingEventSink()]
        self._pending: set[asyncio.Task] = set()

    def record(
        self,
        user_id: str,
        event_type: OnboardingEventType,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        """Schedule an event write and return immediately."""
        event = OnboardingEvent(user_id=user_id, event_type=event_type, payload=dict(payload or {}))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, analytics event dropped",
                user_id=user_id,
                event_type=event_type.value,
            )
            return

        task = loop.create_task(self._dispatch(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, event: OnboardingEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.write(event)
            except Exception as e:
                logger.warning(
                    "Analytics sink failed",
                    sink=type(sink).__name__,
                    user_id=event.user_id,
                    event_type=event.event_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled write to finish (tests, shutdown)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
