"""
Pytest configuration and fixtures.

Provides fixtures for:
- In-memory engine wiring (repositories, template store, badge service, tracker)
- A controllable clock
- Database sessions on an in-memory SQLite database
- HTTP client with SQL-backed dependencies bound to the test session
"""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from questline.api.deps import get_event_log, get_notifications
from questline.core.cache import SimpleCache
from questline.core.constants import StepCategory
from questline.db.base import Base
from questline.db.session import get_db
from questline.main import app
from questline.repositories.memory import (
    InMemoryBadgeRepository,
    InMemoryProgressRepository,
    InMemoryTemplateRepository,
)
from questline.repositories.progress_repo import SqlProgressRepository
from questline.schemas.quest import QuestTemplate, StepDefinition
from questline.services.analytics import EventLog, InMemoryEventSink
from questline.services.badge_catalog import load_badge_catalog
from questline.services.badges import BadgeUnlockService
from questline.services.notifications import InMemoryNotificationHub
from questline.services.progress import ProgressTracker
from questline.services.templates import DEFAULT_TEMPLATE, TemplateStore, get_template_cache

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; advance() moves time forward."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def clear_template_cache():
    """The process-wide template cache must not leak between tests."""
    get_template_cache().clear()
    yield
    get_template_cache().clear()


# -----------------------------------------------------------------------------
# Template Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def optional_template() -> QuestTemplate:
    """One required step followed by one optional step with a badge."""
    return QuestTemplate(
        id="explore",
        name="Explore",
        steps=(
            StepDefinition(id="profile", title="Fill profile", order=1, points=10, badge_id="starter"),
            StepDefinition(
                id="tour",
                title="Take the tour",
                order=2,
                points=25,
                is_required=False,
                category=StepCategory.EXPLORATION,
                badge_id="explorer",
            ),
        ),
    )


@pytest.fixture
def single_optional_template() -> QuestTemplate:
    """A required step plus a single optional step, used for skip-to-finish flows."""
    return QuestTemplate(
        id="short",
        name="Short quest",
        steps=(
            StepDefinition(id="hello", title="Say hello", order=1, points=5),
            StepDefinition(id="bonus", title="Bonus", order=2, points=25, is_required=False, badge_id="explorer"),
        ),
    )


@pytest.fixture
def broken_badge_template() -> QuestTemplate:
    """A template whose first step references a badge missing from the catalog."""
    return QuestTemplate(
        id="broken",
        name="Broken badge",
        steps=(
            StepDefinition(id="a", title="A", order=1, points=40, badge_id="no_such_badge"),
            StepDefinition(id="b", title="B", order=2, points=60),
        ),
    )


# -----------------------------------------------------------------------------
# In-memory Engine Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog():
    return load_badge_catalog()


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def event_log(event_sink) -> EventLog:
    return EventLog([event_sink])


@pytest.fixture
def progress_repo() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def badge_repo() -> InMemoryBadgeRepository:
    return InMemoryBadgeRepository()


@pytest.fixture
def template_repo(optional_template, single_optional_template, broken_badge_template):
    return InMemoryTemplateRepository(
        [optional_template, single_optional_template, broken_badge_template]
    )


@pytest.fixture
def template_store(template_repo) -> TemplateStore:
    return TemplateStore(template_repo, cache=SimpleCache())


@pytest.fixture
def badge_service(badge_repo, catalog, clock) -> BadgeUnlockService:
    return BadgeUnlockService(badge_repo, catalog, clock=clock)


@pytest.fixture
def hub(progress_repo) -> InMemoryNotificationHub:
    return InMemoryNotificationHub(loader=progress_repo.get)


@pytest.fixture
def tracker(progress_repo, template_store, badge_service, hub, event_log, clock) -> ProgressTracker:
    return ProgressTracker(
        progress_repo=progress_repo,
        templates=template_store,
        badges=badge_service,
        notifications=hub,
        events=event_log,
        clock=clock,
        max_attempts=5,
        enable_badges=True,
    )


@pytest.fixture
def default_template() -> QuestTemplate:
    return DEFAULT_TEMPLATE


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_session_maker() as session:
        yield session
        await session.rollback()


# Alias for db_session to match test expectations
@pytest_asyncio.fixture
async def db(db_session) -> AsyncSession:
    """Alias for db_session."""
    return db_session


# -----------------------------------------------------------------------------
# HTTP Client Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def api_event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def api_event_log(api_event_sink) -> EventLog:
    return EventLog([api_event_sink])


@pytest.fixture
def api_hub(test_session_maker) -> InMemoryNotificationHub:
    async def load(user_id: str):
        async with test_session_maker() as session:
            return await SqlProgressRepository(session).get(user_id)

    return InMemoryNotificationHub(loader=load)


@pytest_asyncio.fixture(scope="function")
async def client(db_session, api_hub, api_event_log) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client bound to the test database."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifications] = lambda: api_hub
    app.dependency_overrides[get_event_log] = lambda: api_event_log

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await api_event_log.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-Id": "user-1"}
