"""
Badge catalog.

The catalog is immutable reference data built once at process start and
injected into the badge service, so tests can supply synthetic catalogs.
"""
import json
from collections.abc import Iterator, Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Optional

import structlog

from questline.core.config import settings
from questline.core.constants import BadgeRarity
from questline.schemas.badge import Badge

logger = structlog.get_logger()


DEFAULT_BADGES: tuple[Badge, ...] = (
    Badge(
        id="starter",
        title="First Step",
        description="Completed your initial profile",
        rarity=BadgeRarity.COMMON,
        icon="rocket",
        requirements=("Complete your profile",),
    ),
    Badge(
        id="connector",
        title="Connector",
        description="Joined your first community",
        rarity=BadgeRarity.COMMON,
        icon="handshake",
        requirements=("Join a community",),
    ),
    Badge(
        id="first_voice",
        title="First Voice",
        description="Published your first post",
        rarity=BadgeRarity.RARE,
        icon="microphone",
        requirements=("Create your first post",),
    ),
    Badge(
        id="explorer",
        title="Explorer",
        description="Finished the whole welcome adventure",
        rarity=BadgeRarity.EPIC,
        icon="map",
        requirements=("Complete the onboarding quest",),
    ),
)


class BadgeCatalog(Mapping[str, Badge]):
    """Read-only mapping of badge id to Badge."""

    def __init__(self, badges: Iterable[Badge]):
        entries: dict[str, Badge] = {}
        for badge in badges:
            if badge.id in entries:
                raise ValueError(f"Duplicate badge id in catalog: {badge.id}")
            entries[badge.id] = badge
        self._badges = MappingProxyType(entries)

    def __getitem__(self, badge_id: str) -> Badge:
        return self._badges[badge_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._badges)

    def __len__(self) -> int:
        return len(self._badges)

    def all(self) -> list[Badge]:
        return list(self._badges.values())

    def __repr__(self) -> str:
        return f"<BadgeCatalog badges={list(self._badges)}>"


def load_badge_catalog(path: Optional[str] = None) -> BadgeCatalog:
    """
    Build the badge catalog.

    Args:
        path: Optional JSON file containing a list of badge objects. The
            built-in catalog is used when omitted.

    Returns:
        Immutable BadgeCatalog
    """
    if not path:
        return BadgeCatalog(DEFAULT_BADGES)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    catalog = BadgeCatalog(Badge.model_validate(entry) for entry in raw)
    logger.info("Loaded badge catalog", path=path, badges=len(catalog))
    return catalog


@lru_cache
def get_badge_catalog() -> BadgeCatalog:
    """Process-wide catalog, loaded on first use."""
    return load_badge_catalog(settings.badge_catalog_path)
