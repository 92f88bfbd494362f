"""
Domain exceptions for the quest engine.

Validation errors (not-found, cannot-skip, already-terminal) are raised to the
caller and never retried. ConcurrentModification is internal to the progress
tracker's compare-and-swap loop. PersistenceUnavailable is raised once the
repository layer has exhausted its transient-error retries.
"""


class QuestlineError(Exception):
    """Base class for all quest engine errors."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class TemplateNotFound(QuestlineError):
    """Requested template does not exist or is inactive."""

    def __init__(self, template_id: str | None):
        super().__init__(
            f"Quest template '{template_id}' not found or inactive",
            template_id=template_id,
        )
        self.template_id = template_id


class TemplateValidationError(QuestlineError):
    """Template definition violates a structural invariant."""


class ProgressNotFound(QuestlineError):
    """Operation on a user that has no progress record."""

    def __init__(self, user_id: str):
        super().__init__(
            f"No onboarding progress for user '{user_id}'",
            user_id=user_id,
        )
        self.user_id = user_id


class StepNotFound(QuestlineError):
    """Step id is not part of the progress's template."""

    def __init__(self, step_id: str, template_id: str | None = None):
        super().__init__(
            f"Step '{step_id}' not found in template '{template_id}'",
            step_id=step_id,
            template_id=template_id,
        )
        self.step_id = step_id
        self.template_id = template_id


class CannotSkipRequiredStep(QuestlineError):
    def __init__(self, step_id: str):
        super().__init__(f"Step '{step_id}' is required and cannot be skipped", step_id=step_id)
        self.step_id = step_id


class StepAlreadyCompleted(QuestlineError):
    """Attempt to skip a step that has already been completed."""

    def __init__(self, step_id: str):
        super().__init__(f"Step '{step_id}' is already completed", step_id=step_id)
        self.step_id = step_id


class AlreadyTerminal(QuestlineError):
    """Transition requested after the quest was completed."""

    def __init__(self, user_id: str):
        super().__init__(
            f"Onboarding for user '{user_id}' is already completed",
            user_id=user_id,
        )
        self.user_id = user_id


class UnknownBadge(QuestlineError):
    def __init__(self, badge_id: str):
        super().__init__(f"Badge '{badge_id}' is not in the catalog", badge_id=badge_id)
        self.badge_id = badge_id


class ConcurrentModification(QuestlineError):
    """Compare-and-swap write lost against a concurrent writer."""

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(
            f"Progress for user '{user_id}' changed since version {expected_version}",
            user_id=user_id,
            expected_version=expected_version,
        )
        self.user_id = user_id
        self.expected_version = expected_version


class PersistenceUnavailable(QuestlineError):
    """Backing store unreachable after all retries."""
