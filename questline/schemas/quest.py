"""
Quest template schemas.

A QuestTemplate is an ordered, versioned list of StepDefinitions. Templates
are validated on construction so the progress tracker can rely on their
structural invariants (unique ids, contiguous order, at least one required
step).
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from questline.core.constants import StepCategory, TemplateCategory
from questline.core.exceptions import TemplateValidationError
from questline.core.utils import utc_now


class StepDefinition(BaseModel):
    """One unit of work within a quest template."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    order: int = Field(ge=1)
    points: int = Field(default=0, ge=0)
    is_required: bool = True
    category: StepCategory = StepCategory.SETUP
    badge_id: Optional[str] = None
    target_value: int = Field(default=1, ge=1)
    action_type: Optional[str] = None  # profile_completion, community_join, first_post, ...


class QuestTemplate(BaseModel):
    """An ordered quest definition."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    is_active: bool = True
    steps: tuple[StepDefinition, ...]
    category: TemplateCategory = TemplateCategory.STANDARD
    estimated_time_minutes: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_steps(self) -> "QuestTemplate":
        validate_steps(self.steps)
        return self

    @property
    def total_points(self) -> int:
        return sum(step.points for step in self.steps)

    @property
    def step_ids(self) -> list[str]:
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> Optional[StepDefinition]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def ordered_steps(self) -> list[StepDefinition]:
        return sorted(self.steps, key=lambda s: s.order)


def validate_steps(steps: tuple[StepDefinition, ...] | list[StepDefinition]) -> None:
    """
    Check the structural invariants of a template's steps.

    Raises:
        TemplateValidationError: On empty steps, duplicate ids, order values
            that are not exactly 1..N in sequence, or no required step.
    """
    if not steps:
        raise TemplateValidationError("Quest template must have at least one step")

    ids = [step.id for step in steps]
    duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
    if duplicates:
        raise TemplateValidationError(
            f"Duplicate step ids: {', '.join(duplicates)}",
            step_ids=duplicates,
        )

    orders = [step.order for step in steps]
    if orders != list(range(1, len(steps) + 1)):
        raise TemplateValidationError(
            f"Step order must run 1..{len(steps)} without gaps, got {orders}",
            orders=orders,
        )

    if not any(step.is_required for step in steps):
        raise TemplateValidationError("Quest template must have at least one required step")


def ensure_compatible_revision(current: QuestTemplate, revised: QuestTemplate) -> None:
    """
    Check that a template revision keeps in-flight progress valid.

    Existing steps may not be removed or reordered; new steps may only be
    appended after them. Deactivating the template is always allowed.

    Raises:
        TemplateValidationError: If the revision drops or reorders steps.
    """
    if current.id != revised.id:
        raise TemplateValidationError(
            f"Cannot revise template '{current.id}' with '{revised.id}'"
        )

    current_ids = [step.id for step in current.ordered_steps()]
    revised_ids = [step.id for step in revised.ordered_steps()]

    if revised_ids[: len(current_ids)] != current_ids:
        missing = [step_id for step_id in current_ids if step_id not in revised_ids]
        raise TemplateValidationError(
            "Template revisions may only append steps; existing steps were "
            + (f"removed ({', '.join(missing)})" if missing else "reordered"),
            template_id=current.id,
        )


# ============ API request schemas ============


class InitializeRequest(BaseModel):
    template_id: Optional[str] = None


class StepProgressRequest(BaseModel):
    value: int = Field(ge=0)
