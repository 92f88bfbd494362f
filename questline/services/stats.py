"""
Onboarding statistics.

Aggregates across every user's progress record: completion rates, average
time to finish, most popular template and the step users skip most.
"""
from collections import Counter
from typing import Iterable, Optional

from questline.core.constants import StepStatus
from questline.core.utils import utc_now
from questline.schemas.progress import OnboardingProgress, OnboardingStats


def _percent(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(100.0 * part / total, 2)


def compute_onboarding_stats(records: Iterable[OnboardingProgress]) -> OnboardingStats:
    """
    Compute aggregate onboarding statistics.

    Args:
        records: Progress records for all users

    Returns:
        OnboardingStats with last_updated set to now
    """
    records = list(records)
    total = len(records)
    if total == 0:
        return OnboardingStats(last_updated=utc_now())

    completed = [p for p in records if p.is_completed]

    completion_hours = [
        (p.completed_at - p.started_at).total_seconds() / 3600
        for p in completed
        if p.completed_at is not None
    ]

    template_counts = Counter(p.template_id for p in records)
    skipped_counts: Counter[str] = Counter()
    completed_counts: Counter[str] = Counter()
    step_ids: list[str] = []

    for progress in records:
        for step_id, state in progress.step_states.items():
            if step_id not in step_ids:
                step_ids.append(step_id)
            if state.status == StepStatus.COMPLETED:
                completed_counts[step_id] += 1
            elif state.status == StepStatus.SKIPPED:
                skipped_counts[step_id] += 1

    most_skipped: Optional[str] = None
    if skipped_counts:
        most_skipped = skipped_counts.most_common(1)[0][0]

    return OnboardingStats(
        total_users=total,
        completed_users=len(completed),
        in_progress_users=total - len(completed),
        completion_rate=_percent(len(completed), total),
        average_completion_percentage=round(
            sum(p.completion_percentage for p in records) / total, 2
        ),
        average_completion_time_hours=(
            round(sum(completion_hours) / len(completion_hours), 2) if completion_hours else 0.0
        ),
        average_points_earned=round(sum(p.total_points_earned for p in records) / total, 2),
        popular_template=template_counts.most_common(1)[0][0],
        most_skipped_step=most_skipped,
        step_completion_rates={
            step_id: _percent(completed_counts[step_id], total) for step_id in step_ids
        },
        last_updated=utc_now(),
    )
