"""
Tests for onboarding statistics aggregation.
"""
from datetime import datetime, timedelta, timezone

import pytest

from questline.core.constants import StepStatus
from questline.schemas.progress import OnboardingProgress, StepState
from questline.services.stats import compute_onboarding_stats

STARTED = datetime(2025, 2, 1, 8, 0, tzinfo=timezone.utc)


def progress(user_id: str, template_id: str = "default", completed_hours: float | None = None, **statuses):
    states = {
        step_id: StepState(status=statuses.get(f"s{step_id}", StepStatus.PENDING))
        for step_id in ("1", "2", "3")
    }
    done = completed_hours is not None
    terminal = sum(1 for s in states.values() if s.is_terminal)
    return OnboardingProgress(
        user_id=user_id,
        template_id=template_id,
        started_at=STARTED,
        completed_at=STARTED + timedelta(hours=completed_hours) if done else None,
        step_states=states,
        is_completed=done,
        completion_percentage=round(100 * terminal / 3),
        total_points_earned=sum(10 for s in states.values() if s.status == StepStatus.COMPLETED),
    )


class TestComputeOnboardingStats:

    def test_no_users(self):
        stats = compute_onboarding_stats([])

        assert stats.total_users == 0
        assert stats.completion_rate == 0.0
        assert stats.popular_template is None
        assert stats.last_updated is not None

    def test_aggregates(self):
        records = [
            progress(
                "a",
                completed_hours=2,
                s1=StepStatus.COMPLETED,
                s2=StepStatus.COMPLETED,
                s3=StepStatus.SKIPPED,
            ),
            progress(
                "b",
                completed_hours=4,
                s1=StepStatus.COMPLETED,
                s2=StepStatus.SKIPPED,
                s3=StepStatus.SKIPPED,
            ),
            progress("c", template_id="explore", s1=StepStatus.COMPLETED),
            progress("d"),
        ]

        stats = compute_onboarding_stats(records)

        assert stats.total_users == 4
        assert stats.completed_users == 2
        assert stats.in_progress_users == 2
        assert stats.completion_rate == 50.0
        assert stats.average_completion_time_hours == 3.0
        assert stats.average_completion_percentage == pytest.approx((100 + 100 + 33 + 0) / 4)
        assert stats.average_points_earned == 10.0
        assert stats.popular_template == "default"
        assert stats.most_skipped_step == "3"
        assert stats.step_completion_rates == {"1": 75.0, "2": 25.0, "3": 0.0}
