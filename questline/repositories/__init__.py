"""
Repository layer for data access.

Repositories provide a clean abstraction over the backing store,
hiding the details of SQL queries and ORM operations from
the quest engine services.
"""
from questline.repositories.base import BadgeRepository, ProgressRepository, TemplateRepository
from questline.repositories.badge_repo import SqlBadgeRepository
from questline.repositories.memory import (
    InMemoryBadgeRepository,
    InMemoryProgressRepository,
    InMemoryTemplateRepository,
)
from questline.repositories.progress_repo import SqlProgressRepository
from questline.repositories.template_repo import SqlTemplateRepository

__all__ = [
    "BadgeRepository",
    "ProgressRepository",
    "TemplateRepository",
    "SqlBadgeRepository",
    "SqlProgressRepository",
    "SqlTemplateRepository",
    "InMemoryBadgeRepository",
    "InMemoryProgressRepository",
    "InMemoryTemplateRepository",
]
