"""
Onboarding progress tracker.

State machine owning each user's OnboardingProgress:

    uninitialized -> in_progress -> completed

Every transition is read -> validate -> mutate -> recompute -> persist with a
compare-and-swap on the record version. A lost race re-reads and re-applies
the transition, so concurrent completions of different steps all land and a
duplicate completion of the same step collapses into a no-op.

Side effects:
- Badges are listed on the progress record as part of the transition; the
  badge store write happens after commit, best-effort, and never rolls back
  a step
- Change notifications and analytics events are emitted only after the
  write succeeded
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog

from questline.core.config import settings
from questline.core.constants import OnboardingEventType, StepStatus
from questline.core.exceptions import (
    AlreadyTerminal,
    CannotSkipRequiredStep,
    ConcurrentModification,
    ProgressNotFound,
    StepAlreadyCompleted,
    StepNotFound,
    UnknownBadge,
)
from questline.core.utils import utc_now
from questline.repositories.base import ProgressRepository
from questline.schemas.progress import OnboardingProgress, ProgressView, StepState
from questline.schemas.quest import QuestTemplate, StepDefinition
from questline.services.aggregation import build_view, next_pending_step, recompute, sync_step_states
from questline.services.analytics import EventLog
from questline.services.badges import BadgeUnlockService
from questline.services.notifications import NotificationPort
from questline.services.templates import TemplateStore

logger = structlog.get_logger()


@dataclass
class _Transition:
    """Events produced by one applied transition, emitted after commit."""
    events: list[tuple[OnboardingEventType, dict[str, Any]]] = field(default_factory=list)
    # Badge unlocks written once the progress record is committed
    badges: list[str] = field(default_factory=list)

    def emit(self, event_type: OnboardingEventType, **payload: Any) -> None:
        self.events.append((event_type, payload))


# Mutates progress in place; returns None when the request is a no-op
Mutation = Callable[[OnboardingProgress, QuestTemplate, datetime], Awaitable[Optional[_Transition]]]


class ProgressTracker:
    """
    Progress state machine.

    Args:
        progress_repo: Progress storage port
        templates: Template store
        badges: Badge unlock service
        notifications: Change notification port
        events: Analytics event log
        clock: Time source
        max_attempts: Compare-and-swap attempts per transition
        enable_badges: Award step badges on completion
    """

    def __init__(
        self,
        progress_repo: ProgressRepository,
        templates: TemplateStore,
        badges: BadgeUnlockService,
        notifications: NotificationPort,
        events: EventLog,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: Optional[int] = None,
        enable_badges: Optional[bool] = None,
    ):
        self.progress_repo = progress_repo
        self.templates = templates
        self.badges = badges
        self.notifications = notifications
        self.events = events
        self._clock = clock
        self.max_attempts = max_attempts or settings.max_transition_attempts
        self.enable_badges = settings.enable_badges if enable_badges is None else enable_badges

    # ============ Reads ============

    async def get_progress(self, user_id: str) -> Optional[OnboardingProgress]:
        return await self.progress_repo.get(user_id)

    async def next_step(self, progress: OnboardingProgress) -> Optional[StepDefinition]:
        """Lowest-order pending step of the progress's template, or None."""
        template = await self.templates.get_template(progress.template_id)
        return next_pending_step(progress, template)

    async def get_view(self, user_id: str) -> Optional[ProgressView]:
        progress = await self.progress_repo.get(user_id)
        if progress is None:
            return None
        template = await self.templates.get_template(progress.template_id)
        self._sync(progress, template)
        return build_view(progress, template)

    # ============ Transitions ============

    async def initialize(self, user_id: str, template_id: Optional[str] = None) -> OnboardingProgress:
        """
        Start onboarding for a user.

        An existing record is returned unchanged, so repeated calls never
        reset progress.

        Raises:
            TemplateNotFound: If the template is missing or inactive
        """
        existing = await self.progress_repo.get(user_id)
        if existing is not None:
            return existing

        template = await self.templates.get_active_template(template_id)
        now = self._clock()
        progress = OnboardingProgress(
            user_id=user_id,
            template_id=template.id,
            started_at=now,
            step_states={step.id: StepState() for step in template.steps},
        )
        recompute(progress, template, now)

        stored, created = await self.progress_repo.create(progress)
        if not created:
            return stored

        logger.info(
            "Onboarding initialized",
            user_id=user_id,
            template_id=template.id,
            total_steps=len(template.steps),
        )
        transition = _Transition()
        transition.emit(
            OnboardingEventType.ONBOARDING_STARTED,
            template_id=template.id,
            total_steps=len(template.steps),
        )
        await self._after_commit(stored, transition)
        return stored

    async def complete_step(self, user_id: str, step_id: str) -> OnboardingProgress:
        """
        Mark a step completed.

        Completing an already-completed step returns the record unchanged.

        Raises:
            ProgressNotFound: User was never initialized
            StepNotFound: Step is not in the user's template
            AlreadyTerminal: Quest is already completed
        """
        async def mutation(progress, template, now):
            step = self._require_step(template, step_id)
            state = self._state_of(progress, step)
            if state.status == StepStatus.COMPLETED:
                return None
            if progress.is_completed:
                raise AlreadyTerminal(user_id)
            if state.status == StepStatus.SKIPPED:
                logger.debug("Ignoring completion of skipped step", user_id=user_id, step_id=step_id)
                return None
            return await self._complete(progress, template, step, now)

        return await self._transition(user_id, "complete_step", mutation)

    async def skip_step(self, user_id: str, step_id: str) -> OnboardingProgress:
        """
        Skip an optional step.

        Skipping an already-skipped step returns the record unchanged.

        Raises:
            ProgressNotFound: User was never initialized
            StepNotFound: Step is not in the user's template
            AlreadyTerminal: Quest is already completed
            CannotSkipRequiredStep: Step is required
            StepAlreadyCompleted: Step was completed before
        """
        async def mutation(progress, template, now):
            step = self._require_step(template, step_id)
            if progress.is_completed:
                raise AlreadyTerminal(user_id)
            if step.is_required:
                raise CannotSkipRequiredStep(step_id)

            state = self._state_of(progress, step)
            if state.status == StepStatus.SKIPPED:
                return None
            if state.status == StepStatus.COMPLETED:
                raise StepAlreadyCompleted(step_id)

            state.status = StepStatus.SKIPPED
            state.completed_at = now

            transition = _Transition()
            transition.emit(OnboardingEventType.STEP_SKIPPED, step_id=step.id)
            if recompute(progress, template, now):
                self._emit_quest_completed(progress, transition)
            return transition

        return await self._transition(user_id, "skip_step", mutation)

    async def update_step_progress(self, user_id: str, step_id: str, value: int) -> OnboardingProgress:
        """
        Record partial progress toward a step's target value.

        The value is capped at the step's target; reaching the target
        completes the step exactly like complete_step. Completed and skipped
        steps are left unchanged.

        Raises:
            ValueError: If value is negative
            ProgressNotFound: User was never initialized
            StepNotFound: Step is not in the user's template
        """
        if value < 0:
            raise ValueError("Step progress value must be non-negative")

        async def mutation(progress, template, now):
            step = self._require_step(template, step_id)
            state = self._state_of(progress, step)
            if state.is_terminal:
                return None

            capped = min(value, step.target_value)
            if capped >= step.target_value:
                return await self._complete(progress, template, step, now)
            if capped == state.current_value:
                return None

            state.current_value = capped
            recompute(progress, template, now)
            return _Transition()

        return await self._transition(user_id, "update_step_progress", mutation)

    # ============ Internals ============

    def _sync(self, progress: OnboardingProgress, template: QuestTemplate) -> None:
        """Pick up steps appended to the template and refresh derived fields."""
        if not progress.is_completed and sync_step_states(progress, template):
            recompute(progress, template, self._clock())

    def _require_step(self, template: QuestTemplate, step_id: str) -> StepDefinition:
        step = template.get_step(step_id)
        if step is None:
            raise StepNotFound(step_id, template.id)
        return step

    def _state_of(self, progress: OnboardingProgress, step: StepDefinition) -> StepState:
        state = progress.state_of(step.id)
        if state is None:
            # Step appended to the template after this user finished
            raise AlreadyTerminal(progress.user_id)
        return state

    async def _transition(self, user_id: str, action: str, mutation: Mutation) -> OnboardingProgress:
        """
        Run a mutation under compare-and-swap, retrying lost races.

        Raises:
            ConcurrentModification: Every attempt lost against another writer
        """
        expected_version = 0
        for attempt in range(1, self.max_attempts + 1):
            progress = await self.progress_repo.get(user_id)
            if progress is None:
                raise ProgressNotFound(user_id)

            template = await self.templates.get_template(progress.template_id)
            self._sync(progress, template)

            transition = await mutation(progress, template, self._clock())
            if transition is None:
                return progress

            expected_version = progress.version
            try:
                stored = await self.progress_repo.save(progress, expected_version)
            except ConcurrentModification:
                logger.info(
                    "Progress write conflict, retrying",
                    user_id=user_id,
                    action=action,
                    attempt=attempt,
                    expected_version=expected_version,
                )
                continue

            await self._after_commit(stored, transition)
            return stored

        logger.warning(
            "Progress transition abandoned after repeated conflicts",
            user_id=user_id,
            action=action,
            attempts=self.max_attempts,
        )
        raise ConcurrentModification(user_id, expected_version)

    async def _complete(
        self,
        progress: OnboardingProgress,
        template: QuestTemplate,
        step: StepDefinition,
        now: datetime,
    ) -> _Transition:
        transition = _Transition()

        state = self._state_of(progress, step)
        state.status = StepStatus.COMPLETED
        state.current_value = step.target_value
        state.completed_at = now

        awarded_badge = None
        if step.badge_id and self.enable_badges:
            if self._claim_badge(progress, step.badge_id, transition):
                awarded_badge = step.badge_id

        transition.emit(
            OnboardingEventType.STEP_COMPLETED,
            step_id=step.id,
            points=step.points,
            badge_id=awarded_badge,
        )
        if recompute(progress, template, now):
            self._emit_quest_completed(progress, transition)
        return transition

    def _claim_badge(
        self,
        progress: OnboardingProgress,
        badge_id: str,
        transition: _Transition,
    ) -> bool:
        """List a badge on the progress; the unlock itself is written after commit."""
        if badge_id not in self.badges.catalog:
            logger.warning(
                "Badge unlock failed",
                user_id=progress.user_id,
                badge_id=badge_id,
                error_type=UnknownBadge.__name__,
            )
            transition.emit(
                OnboardingEventType.BADGE_UNLOCK_FAILED,
                badge_id=badge_id,
                error_type=UnknownBadge.__name__,
            )
            return False

        if badge_id not in progress.badges_earned:
            progress.badges_earned.append(badge_id)
        transition.badges.append(badge_id)
        return True

    async def _unlock_badges(self, progress: OnboardingProgress, transition: _Transition) -> None:
        """Write committed badge claims; failures are reported and never undo the step."""
        for badge_id in transition.badges:
            try:
                await self.badges.unlock(progress.user_id, badge_id)
            except Exception as e:
                logger.warning(
                    "Badge unlock failed",
                    user_id=progress.user_id,
                    badge_id=badge_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                transition.emit(
                    OnboardingEventType.BADGE_UNLOCK_FAILED,
                    badge_id=badge_id,
                    error_type=type(e).__name__,
                )

    def _emit_quest_completed(self, progress: OnboardingProgress, transition: _Transition) -> None:
        duration = progress.completed_at - progress.started_at
        transition.emit(
            OnboardingEventType.QUEST_COMPLETED,
            total_points=progress.total_points_earned,
            badge_count=len(progress.badges_earned),
            duration_ms=int(duration.total_seconds() * 1000),
        )

    async def _after_commit(self, progress: OnboardingProgress, transition: _Transition) -> None:
        await self._unlock_badges(progress, transition)

        try:
            await self.notifications.publish(progress)
        except Exception as e:
            logger.warning(
                "Progress notification failed",
                user_id=progress.user_id,
                version=progress.version,
                error=str(e),
            )

        for event_type, payload in transition.events:
            self.events.record(progress.user_id, event_type, payload)

        if progress.is_completed and any(
            event_type == OnboardingEventType.QUEST_COMPLETED for event_type, _ in transition.events
        ):
            logger.info(
                "Onboarding quest completed",
                user_id=progress.user_id,
                template_id=progress.template_id,
                total_points=progress.total_points_earned,
            )
