"""
Onboarding progress schemas.

OnboardingProgress is the per-user aggregate owned by the progress tracker.
Its derived fields (points, percentage, current step, completion) are only
ever written by questline.services.aggregation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from questline.core.constants import StepStatus
from questline.schemas.quest import StepDefinition


class StepState(BaseModel):
    """Per-user state of one template step."""
    status: StepStatus = StepStatus.PENDING
    current_value: int = 0
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class OnboardingProgress(BaseModel):
    """A user's progress through one quest template."""
    user_id: str
    template_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    step_states: dict[str, StepState]
    current_step_id: Optional[str] = None
    total_points_earned: int = 0
    completion_percentage: int = Field(default=0, ge=0, le=100)
    badges_earned: list[str] = Field(default_factory=list)
    is_completed: bool = False
    # Compare-and-swap token, bumped on every persisted transition
    version: int = 1

    def state_of(self, step_id: str) -> Optional[StepState]:
        return self.step_states.get(step_id)


class ProgressView(BaseModel):
    """Read-side projection of a user's progress for presentation layers."""
    progress: OnboardingProgress
    current_step: Optional[StepDefinition] = None
    needs_onboarding: bool
    completion_percentage: int
    total_points_possible: int
    completed_steps: int
    skipped_steps: int
    total_steps: int
    required_remaining: int


class OnboardingStats(BaseModel):
    """Aggregate statistics across all users' progress."""
    total_users: int = 0
    completed_users: int = 0
    in_progress_users: int = 0
    completion_rate: float = 0.0  # percent
    average_completion_percentage: float = 0.0
    average_completion_time_hours: float = 0.0
    average_points_earned: float = 0.0
    popular_template: Optional[str] = None
    most_skipped_step: Optional[str] = None
    step_completion_rates: dict[str, float] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None


class NextStepResponse(BaseModel):
    step: Optional[StepDefinition] = None
    is_completed: bool
    completion_percentage: int
