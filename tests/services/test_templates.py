"""
Tests for quest template validation and the template store.
"""
from datetime import datetime, timedelta, timezone

import pytest

from questline.core.cache import SimpleCache
from questline.core.exceptions import TemplateNotFound, TemplateValidationError
from questline.repositories.memory import InMemoryTemplateRepository
from questline.schemas.quest import QuestTemplate, StepDefinition, ensure_compatible_revision
from questline.services.templates import DEFAULT_TEMPLATE, TemplateStore


def step(step_id: str, order: int, **kwargs) -> StepDefinition:
    return StepDefinition(id=step_id, title=step_id.title(), order=order, **kwargs)


class TestTemplateValidation:
    """Structural invariants enforced on construction."""

    def test_valid_template(self):
        template = QuestTemplate(id="t", name="T", steps=(step("a", 1, points=5), step("b", 2, points=7)))

        assert template.total_points == 12
        assert template.step_ids == ["a", "b"]
        assert template.get_step("b").order == 2
        assert template.get_step("zzz") is None

    def test_empty_steps(self):
        with pytest.raises(TemplateValidationError):
            QuestTemplate(id="t", name="T", steps=())

    def test_duplicate_step_ids(self):
        with pytest.raises(TemplateValidationError) as exc_info:
            QuestTemplate(id="t", name="T", steps=(step("a", 1), step("a", 2)))

        assert exc_info.value.context["step_ids"] == ["a"]

    def test_gap_in_order(self):
        with pytest.raises(TemplateValidationError):
            QuestTemplate(id="t", name="T", steps=(step("a", 1), step("b", 3)))

    def test_order_not_increasing(self):
        with pytest.raises(TemplateValidationError):
            QuestTemplate(id="t", name="T", steps=(step("a", 2), step("b", 1)))

    def test_requires_a_required_step(self):
        with pytest.raises(TemplateValidationError):
            QuestTemplate(
                id="t",
                name="T",
                steps=(step("a", 1, is_required=False), step("b", 2, is_required=False)),
            )

    def test_step_field_bounds(self):
        with pytest.raises(ValueError):
            step("a", 1, points=-1)
        with pytest.raises(ValueError):
            step("a", 1, target_value=0)

    def test_default_template_shape(self):
        assert DEFAULT_TEMPLATE.id == "default"
        assert [s.points for s in DEFAULT_TEMPLATE.steps] == [50, 75, 100]
        assert all(s.is_required for s in DEFAULT_TEMPLATE.steps)


class TestCompatibleRevision:
    """Template edits may only append steps or deactivate."""

    @pytest.fixture
    def current(self) -> QuestTemplate:
        return QuestTemplate(id="t", name="T", steps=(step("a", 1), step("b", 2)))

    def test_append_allowed(self, current):
        revised = QuestTemplate(id="t", name="T v2", steps=(step("a", 1), step("b", 2), step("c", 3)))

        ensure_compatible_revision(current, revised)

    def test_deactivate_allowed(self, current):
        ensure_compatible_revision(current, current.model_copy(update={"is_active": False}))

    def test_removal_rejected(self, current):
        with pytest.raises(TemplateValidationError) as exc_info:
            ensure_compatible_revision(current, QuestTemplate(id="t", name="T", steps=(step("a", 1),)))

        assert "removed" in exc_info.value.message

    def test_reorder_rejected(self, current):
        revised = QuestTemplate(id="t", name="T", steps=(step("b", 1), step("a", 2)))

        with pytest.raises(TemplateValidationError) as exc_info:
            ensure_compatible_revision(current, revised)

        assert "reordered" in exc_info.value.message

    def test_insert_before_existing_rejected(self, current):
        revised = QuestTemplate(id="t", name="T", steps=(step("new", 1), step("a", 2), step("b", 3)))

        with pytest.raises(TemplateValidationError):
            ensure_compatible_revision(current, revised)

    def test_different_id_rejected(self, current):
        with pytest.raises(TemplateValidationError):
            ensure_compatible_revision(current, current.model_copy(update={"id": "other"}))

    @pytest.mark.asyncio
    async def test_repository_enforces_revision(self, current):
        repo = InMemoryTemplateRepository([current])

        with pytest.raises(TemplateValidationError):
            await repo.save(QuestTemplate(id="t", name="T", steps=(step("b", 1),)))

        assert (await repo.get("t")).step_ids == ["a", "b"]


class TestTemplateStore:
    """Tests for TemplateStore reads and caching."""

    @pytest.fixture
    def base_time(self) -> datetime:
        return datetime(2025, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_default_falls_back_to_builtin(self):
        store = TemplateStore(InMemoryTemplateRepository(), cache=SimpleCache())

        template = await store.get_active_template()

        assert template == DEFAULT_TEMPLATE

    @pytest.mark.asyncio
    async def test_stored_template_shadows_builtin(self):
        custom = QuestTemplate(id="default", name="Custom welcome", steps=(step("x", 1),))
        store = TemplateStore(InMemoryTemplateRepository([custom]), cache=SimpleCache())

        assert (await store.get_active_template()).name == "Custom welcome"

    @pytest.mark.asyncio
    async def test_configured_default_id(self, optional_template):
        store = TemplateStore(
            InMemoryTemplateRepository([optional_template]),
            cache=SimpleCache(),
            default_template_id="explore",
        )

        assert (await store.get_active_template()).id == "explore"

    @pytest.mark.asyncio
    async def test_missing_template(self):
        store = TemplateStore(InMemoryTemplateRepository(), cache=SimpleCache())

        with pytest.raises(TemplateNotFound) as exc_info:
            await store.get_active_template("missing")

        assert exc_info.value.template_id == "missing"

    @pytest.mark.asyncio
    async def test_inactive_template(self):
        retired = QuestTemplate(id="old", name="Old", is_active=False, steps=(step("x", 1),))
        store = TemplateStore(InMemoryTemplateRepository([retired]), cache=SimpleCache())

        with pytest.raises(TemplateNotFound):
            await store.get_active_template("old")

        assert (await store.get_template("old")).id == "old"

    @pytest.mark.asyncio
    async def test_get_template_missing(self):
        store = TemplateStore(InMemoryTemplateRepository(), cache=SimpleCache())

        with pytest.raises(TemplateNotFound):
            await store.get_template("missing")

    @pytest.mark.asyncio
    async def test_list_active_newest_first(self, base_time):
        older = QuestTemplate(id="older", name="Older", steps=(step("x", 1),), created_at=base_time)
        newer = QuestTemplate(
            id="newer",
            name="Newer",
            steps=(step("x", 1),),
            created_at=base_time + timedelta(days=30),
        )
        retired = QuestTemplate(
            id="retired",
            name="Retired",
            is_active=False,
            steps=(step("x", 1),),
            created_at=base_time + timedelta(days=60),
        )
        store = TemplateStore(InMemoryTemplateRepository([older, newer, retired]), cache=SimpleCache())

        templates = await store.list_active_templates()

        # The built-in default template predates both
        assert [t.id for t in templates] == ["newer", "older", "default"]

    @pytest.mark.asyncio
    async def test_reads_are_cached(self, optional_template):
        repo = InMemoryTemplateRepository([optional_template])
        store = TemplateStore(repo, cache=SimpleCache())
        await store.get_active_template("explore")

        await repo.save(optional_template.model_copy(update={"name": "Renamed"}))

        assert (await store.get_active_template("explore")).name == "Explore"
        store.invalidate("explore")
        assert (await store.get_active_template("explore")).name == "Renamed"

    @pytest.mark.asyncio
    async def test_invalidate_all(self, optional_template):
        repo = InMemoryTemplateRepository()
        store = TemplateStore(repo, cache=SimpleCache())
        assert [t.id for t in await store.list_active_templates()] == ["default"]

        await repo.save(optional_template)
        store.invalidate()

        assert "explore" in [t.id for t in await store.list_active_templates()]
