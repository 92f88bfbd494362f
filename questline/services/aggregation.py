"""
Derived fields of onboarding progress.

Everything here is a pure function of a progress record and its template:
total points, completion percentage, current step and completion flag are
always recomputed from the step states, never adjusted incrementally.
"""
from datetime import datetime
from typing import Optional

from questline.core.constants import StepStatus
from questline.core.utils import round_half_up_percent
from questline.schemas.progress import OnboardingProgress, ProgressView, StepState
from questline.schemas.quest import QuestTemplate, StepDefinition


def terminal_step_count(progress: OnboardingProgress, template: QuestTemplate) -> int:
    """Number of template steps whose status is completed or skipped."""
    count = 0
    for step in template.steps:
        state = progress.step_states.get(step.id)
        if state is not None and state.is_terminal:
            count += 1
    return count


def completion_percentage(progress: OnboardingProgress, template: QuestTemplate) -> int:
    return round_half_up_percent(terminal_step_count(progress, template), len(template.steps))


def points_earned(progress: OnboardingProgress, template: QuestTemplate) -> int:
    """Sum of points over completed steps; skipped steps earn nothing."""
    total = 0
    for step in template.steps:
        state = progress.step_states.get(step.id)
        if state is not None and state.status == StepStatus.COMPLETED:
            total += step.points
    return total


def next_pending_step(progress: OnboardingProgress, template: QuestTemplate) -> Optional[StepDefinition]:
    """The lowest-order step whose status is pending, or None."""
    for step in template.ordered_steps():
        state = progress.step_states.get(step.id)
        if state is None or state.status == StepStatus.PENDING:
            return step
    return None


def sync_step_states(progress: OnboardingProgress, template: QuestTemplate) -> bool:
    """
    Add pending states for steps appended to the template after the user
    started.

    Returns:
        True if any state was added
    """
    added = False
    for step in template.steps:
        if step.id not in progress.step_states:
            progress.step_states[step.id] = StepState()
            added = True
    return added


def recompute(progress: OnboardingProgress, template: QuestTemplate, now: datetime) -> bool:
    """
    Refresh all derived fields in place.

    Returns:
        True if this recompute moved the progress into the completed state
    """
    current = next_pending_step(progress, template)

    progress.total_points_earned = points_earned(progress, template)
    progress.completion_percentage = completion_percentage(progress, template)
    progress.current_step_id = current.id if current else None

    if current is None and not progress.is_completed:
        progress.is_completed = True
        progress.completed_at = now
        return True
    return False


def build_view(progress: OnboardingProgress, template: QuestTemplate) -> ProgressView:
    """Project a progress record into what a presentation layer shows."""
    completed = skipped = required_remaining = 0
    for step in template.steps:
        state = progress.step_states.get(step.id)
        status = state.status if state else StepStatus.PENDING
        if status == StepStatus.COMPLETED:
            completed += 1
        elif status == StepStatus.SKIPPED:
            skipped += 1
        elif step.is_required:
            required_remaining += 1

    current_step = None
    if progress.current_step_id is not None:
        current_step = template.get_step(progress.current_step_id)

    return ProgressView(
        progress=progress,
        current_step=current_step,
        needs_onboarding=not progress.is_completed,
        completion_percentage=progress.completion_percentage,
        total_points_possible=template.total_points,
        completed_steps=completed,
        skipped_steps=skipped,
        total_steps=len(template.steps),
        required_remaining=required_remaining,
    )
