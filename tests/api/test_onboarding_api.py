"""
Tests for the onboarding, template and badge endpoints.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient

from questline.core.constants import OnboardingEventType
from questline.models import OnboardingStatsSnapshot
from questline.repositories.template_repo import SqlTemplateRepository


@pytest_asyncio.fixture
async def started(client: AsyncClient, user_headers):
    response = await client.post("/api/onboarding/me/initialize", headers=user_headers)
    assert response.status_code == 200
    return response.json()


class TestIdentity:

    @pytest.mark.asyncio
    async def test_missing_user_header(self, client: AsyncClient):
        response = await client.get("/api/onboarding/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_progress_not_found(self, client: AsyncClient, user_headers):
        response = await client.get("/api/onboarding/me", headers=user_headers)

        assert response.status_code == 404
        assert response.json()["error_type"] == "ProgressNotFound"
        assert response.json()["user_id"] == "user-1"


class TestInitialize:

    @pytest.mark.asyncio
    async def test_initialize_default(self, client: AsyncClient, user_headers):
        response = await client.post("/api/onboarding/me/initialize", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "user-1"
        assert data["template_id"] == "default"
        assert data["current_step_id"] == "1"
        assert data["completion_percentage"] == 0
        assert set(data["step_states"]) == {"1", "2", "3"}
        assert data["version"] == 1

    @pytest.mark.asyncio
    async def test_initialize_twice_returns_existing(self, client: AsyncClient, user_headers, started):
        response = await client.post(
            "/api/onboarding/me/initialize",
            headers=user_headers,
            json={"template_id": "something-else"},
        )

        assert response.status_code == 200
        assert response.json() == started

    @pytest.mark.asyncio
    async def test_initialize_unknown_template(self, client: AsyncClient, user_headers):
        response = await client.post(
            "/api/onboarding/me/initialize",
            headers=user_headers,
            json={"template_id": "missing"},
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "TemplateNotFound"

    @pytest.mark.asyncio
    async def test_initialize_stored_template(self, client: AsyncClient, user_headers, db_session, optional_template):
        await SqlTemplateRepository(db_session).save(optional_template)

        response = await client.post(
            "/api/onboarding/me/initialize",
            headers=user_headers,
            json={"template_id": "explore"},
        )

        assert response.status_code == 200
        assert response.json()["template_id"] == "explore"
        assert response.json()["current_step_id"] == "profile"


class TestStepTransitions:

    @pytest.mark.asyncio
    async def test_complete_step(self, client: AsyncClient, user_headers, started):
        response = await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["step_states"]["1"]["status"] == "completed"
        assert data["total_points_earned"] == 50
        assert data["completion_percentage"] == 33
        assert data["current_step_id"] == "2"
        assert data["badges_earned"] == ["starter"]
        assert data["version"] == 2

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, client: AsyncClient, user_headers, started):
        first = await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)
        second = await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)

        assert second.status_code == 200
        assert second.json() == first.json()

    @pytest.mark.asyncio
    async def test_unknown_step(self, client: AsyncClient, user_headers, started):
        response = await client.post("/api/onboarding/me/steps/99/complete", headers=user_headers)

        assert response.status_code == 404
        assert response.json()["error_type"] == "StepNotFound"

    @pytest.mark.asyncio
    async def test_complete_before_initialize(self, client: AsyncClient, user_headers):
        response = await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_skip_required_step_rejected(self, client: AsyncClient, user_headers, started):
        response = await client.post("/api/onboarding/me/steps/1/skip", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["error_type"] == "CannotSkipRequiredStep"

    @pytest.mark.asyncio
    async def test_skip_optional_step(self, client: AsyncClient, user_headers, db_session, optional_template):
        await SqlTemplateRepository(db_session).save(optional_template)
        await client.post(
            "/api/onboarding/me/initialize",
            headers=user_headers,
            json={"template_id": "explore"},
        )

        response = await client.post("/api/onboarding/me/steps/tour/skip", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["step_states"]["tour"]["status"] == "skipped"
        assert data["completion_percentage"] == 50
        assert data["current_step_id"] == "profile"

    @pytest.mark.asyncio
    async def test_partial_progress_then_complete(self, client: AsyncClient, user_headers, started):
        """Step 1 needs a value of 100 to complete."""
        partial = await client.post(
            "/api/onboarding/me/steps/1/progress",
            headers=user_headers,
            json={"value": 40},
        )
        assert partial.status_code == 200
        assert partial.json()["step_states"]["1"]["current_value"] == 40
        assert partial.json()["step_states"]["1"]["status"] == "pending"

        done = await client.post(
            "/api/onboarding/me/steps/1/progress",
            headers=user_headers,
            json={"value": 250},
        )
        assert done.json()["step_states"]["1"]["status"] == "completed"
        assert done.json()["step_states"]["1"]["current_value"] == 100

    @pytest.mark.asyncio
    async def test_negative_progress_rejected(self, client: AsyncClient, user_headers, started):
        response = await client.post(
            "/api/onboarding/me/steps/1/progress",
            headers=user_headers,
            json={"value": -1},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_finished_quest_is_locked(self, client: AsyncClient, user_headers, started):
        for step_id in ("1", "2", "3"):
            await client.post(f"/api/onboarding/me/steps/{step_id}/complete", headers=user_headers)

        response = await client.post("/api/onboarding/me/steps/2/skip", headers=user_headers)

        assert response.status_code == 409
        assert response.json()["error_type"] == "AlreadyTerminal"


class TestReads:

    @pytest.mark.asyncio
    async def test_view(self, client: AsyncClient, user_headers, started):
        await client.post("/api/onboarding/me/steps/2/complete", headers=user_headers)

        response = await client.get("/api/onboarding/me", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["current_step"]["id"] == "1"
        assert data["needs_onboarding"] is True
        assert data["completed_steps"] == 1
        assert data["total_steps"] == 3
        assert data["total_points_possible"] == 225
        assert data["required_remaining"] == 2

    @pytest.mark.asyncio
    async def test_next_step(self, client: AsyncClient, user_headers, started):
        response = await client.get("/api/onboarding/me/next-step", headers=user_headers)

        assert response.status_code == 200
        assert response.json()["step"]["id"] == "1"
        assert response.json()["is_completed"] is False

    @pytest.mark.asyncio
    async def test_next_step_after_finishing(self, client: AsyncClient, user_headers, started):
        for step_id in ("1", "2", "3"):
            await client.post(f"/api/onboarding/me/steps/{step_id}/complete", headers=user_headers)

        response = await client.get("/api/onboarding/me/next-step", headers=user_headers)

        assert response.json() == {"step": None, "is_completed": True, "completion_percentage": 100}

    @pytest.mark.asyncio
    async def test_templates(self, client: AsyncClient):
        listing = await client.get("/api/templates")
        detail = await client.get("/api/templates/default")
        missing = await client.get("/api/templates/missing")

        assert [t["id"] for t in listing.json()] == ["default"]
        assert [s["id"] for s in detail.json()["steps"]] == ["1", "2", "3"]
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_badges(self, client: AsyncClient, user_headers, started):
        await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)

        catalog = await client.get("/api/badges")
        mine = await client.get("/api/badges/me", headers=user_headers)

        assert "starter" in [b["id"] for b in catalog.json()]
        assert mine.json()["total_badges"] == 1
        assert mine.json()["badges"][0]["badge"]["id"] == "starter"


class TestStats:

    @pytest.mark.asyncio
    async def test_stats_require_identity(self, client: AsyncClient):
        response = await client.get("/api/onboarding/stats")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_stats_computed_without_snapshot(self, client: AsyncClient, user_headers, started):
        await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)

        response = await client.get("/api/onboarding/stats", headers=user_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 1
        assert data["in_progress_users"] == 1
        assert data["popular_template"] == "default"
        assert data["step_completion_rates"]["1"] == 100.0

    @pytest.mark.asyncio
    async def test_stats_served_from_snapshot(self, client: AsyncClient, db_session, user_headers):
        db_session.add(OnboardingStatsSnapshot(stats={"total_users": 42, "completed_users": 40}))
        await db_session.commit()

        response = await client.get("/api/onboarding/stats", headers=user_headers)

        assert response.json()["total_users"] == 42
        assert response.json()["completed_users"] == 40


class TestAnalytics:

    @pytest.mark.asyncio
    async def test_lifecycle_events_recorded(self, client: AsyncClient, user_headers, api_event_log, api_event_sink):
        await client.post("/api/onboarding/me/initialize", headers=user_headers)
        await client.post("/api/onboarding/me/steps/1/complete", headers=user_headers)
        await api_event_log.drain()

        types = [event.event_type for event in api_event_sink.events]
        assert OnboardingEventType.ONBOARDING_STARTED in types
        assert OnboardingEventType.STEP_COMPLETED in types
