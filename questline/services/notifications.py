"""
Change notification port for onboarding progress.

Subscribers receive the full progress snapshot immediately on subscription
and again after every successful transition for that user. Each subscriber
sees a given state version at most once. Delivery does not survive process
restarts; reconnecting consumers re-read via get_progress.

Architecture:
- InMemoryNotificationHub delivers to subscribers in this process
- RedisProgressPublisher additionally fans snapshots out over Redis Pub/Sub
  so every API worker's hub (and its WebSocket clients) sees them
"""
import asyncio
import inspect
import json
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis

from questline.core.config import settings
from questline.core.constants import PROGRESS_CHANNEL_PREFIX, progress_channel
from questline.schemas.progress import OnboardingProgress

logger = structlog.get_logger()

ProgressCallback = Callable[[OnboardingProgress], Any]
SnapshotLoader = Callable[[str], Awaitable[Optional[OnboardingProgress]]]
Unsubscribe = Callable[[], None]


class NotificationPort(ABC):
    """Publish/subscribe of per-user progress snapshots."""

    @abstractmethod
    async def subscribe(self, user_id: str, callback: ProgressCallback) -> Unsubscribe:
        """
        Watch a user's progress.

        The callback may be a plain function or a coroutine function.

        Returns:
            Function that cancels the subscription
        """

    @abstractmethod
    async def publish(self, progress: OnboardingProgress) -> None:
        """Push a new progress snapshot to the user's subscribers."""


@dataclass(eq=False)
class _Subscription:
    user_id: str
    callback: ProgressCallback
    last_version: int = 0
    active: bool = True


class InMemoryNotificationHub(NotificationPort):
    """
    Process-local subscriber registry.

    Args:
        loader: Optional coroutine returning a user's current progress, used
            for the snapshot sent on subscription. Without it the last
            published snapshot is used.
    """

    def __init__(self, loader: Optional[SnapshotLoader] = None):
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)
        self._latest: dict[str, OnboardingProgress] = {}
        self._loader = loader

    def set_loader(self, loader: Optional[SnapshotLoader]) -> None:
        self._loader = loader

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscriptions.get(user_id, []))

    async def subscribe(self, user_id: str, callback: ProgressCallback) -> Unsubscribe:
        subscription = _Subscription(user_id=user_id, callback=callback)
        self._subscriptions[user_id].append(subscription)

        snapshot = await self._current(user_id)
        if snapshot is not None:
            await self._deliver(subscription, snapshot)

        def unsubscribe() -> None:
            subscription.active = False
            subscribers = self._subscriptions.get(user_id)
            if subscribers and subscription in subscribers:
                subscribers.remove(subscription)
                if not subscribers:
                    del self._subscriptions[user_id]

        logger.debug("Progress subscription added", user_id=user_id)
        return unsubscribe

    async def publish(self, progress: OnboardingProgress) -> None:
        latest = self._latest.get(progress.user_id)
        if latest is None or progress.version >= latest.version:
            self._latest[progress.user_id] = progress.model_copy(deep=True)

        for subscription in list(self._subscriptions.get(progress.user_id, [])):
            await self._deliver(subscription, progress)

    async def _current(self, user_id: str) -> Optional[OnboardingProgress]:
        if self._loader is not None:
            try:
                return await self._loader(user_id)
            except Exception as e:
                logger.warning(
                    "Failed to load progress snapshot for subscriber",
                    user_id=user_id,
                    error=str(e),
                )
        return self._latest.get(user_id)

    async def _deliver(self, subscription: _Subscription, progress: OnboardingProgress) -> bool:
        if not subscription.active or progress.version <= subscription.last_version:
            return False

        # Claim the version before awaiting so a concurrent publish cannot resend it
        subscription.last_version = progress.version
        try:
            result = subscription.callback(progress.model_copy(deep=True))
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(
                "Progress subscriber callback failed",
                user_id=subscription.user_id,
                version=progress.version,
                error=str(e),
                error_type=type(e).__name__,
            )
        return True


class RedisProgressPublisher(NotificationPort):
    """
    Notification port that also bridges snapshots across workers.

    Local subscribers are served by the wrapped hub. Every published snapshot
    is sent on `channel:onboarding:user:{user_id}`; snapshots published by
    other workers are fed into the local hub by the listener task.
    """

    def __init__(self, hub: InMemoryNotificationHub, redis: Optional[Redis] = None):
        self.hub = hub
        self._redis = redis
        self._listener_task: Optional[asyncio.Task] = None
        self.origin = uuid.uuid4().hex

    async def get_redis(self) -> Redis:
        """Get or create Redis client for pub/sub."""
        if self._redis is None:
            self._redis = Redis.from_url(settings.redis_url, decode_responses=True)
        return self._redis

    async def subscribe(self, user_id: str, callback: ProgressCallback) -> Unsubscribe:
        return await self.hub.subscribe(user_id, callback)

    async def publish(self, progress: OnboardingProgress) -> None:
        await self.hub.publish(progress)

        message = json.dumps({
            "type": "progress",
            "origin": self.origin,
            "progress": progress.model_dump(mode="json"),
        })
        try:
            redis = await self.get_redis()
            await redis.publish(progress_channel(progress.user_id), message)
        except Exception as e:
            logger.warning(
                "Failed to publish progress to Redis",
                user_id=progress.user_id,
                error=str(e),
            )

    async def handle_message(self, data: str) -> bool:
        """
        Feed a Pub/Sub message from another worker into the local hub.

        Returns:
            True if the message was delivered locally
        """
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON on progress channel")
            return False

        if not isinstance(payload, dict):
            logger.warning("Unexpected message shape on progress channel")
            return False
        if payload.get("origin") == self.origin or payload.get("type") != "progress":
            return False

        try:
            progress = OnboardingProgress.model_validate(payload["progress"])
        except (KeyError, ValidationError) as e:
            logger.warning(
                "Invalid progress snapshot on progress channel",
                origin=payload.get("origin"),
                error=str(e),
            )
            return False
        await self.hub.publish(progress)
        return True

    async def start_listener(self) -> None:
        """Start the Redis Pub/Sub listener (idempotent)."""
        if self._listener_task is not None:
            return

        async def listener():
            redis = await self.get_redis()
            pubsub = redis.pubsub()
            await pubsub.psubscribe(f"{PROGRESS_CHANNEL_PREFIX}*")
            logger.info("Progress Pub/Sub listener started")

            try:
                async for message in pubsub.listen():
                    if message["type"] == "pmessage":
                        await self.handle_message(message["data"])
            except asyncio.CancelledError:
                logger.info("Progress Pub/Sub listener cancelled")
            finally:
                await pubsub.punsubscribe(f"{PROGRESS_CHANNEL_PREFIX}*")
                await pubsub.close()

        self._listener_task = asyncio.create_task(listener())

    async def stop_listener(self) -> None:
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

    async def close(self) -> None:
        await self.stop_listener()
        if self._redis:
            await self._redis.close()
            self._redis = None
