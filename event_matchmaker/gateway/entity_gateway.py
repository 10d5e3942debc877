"""
Entity gateway: typed accessors over the external entity store.

This is the single place raw profile rows become ``Profile`` instances.  A
row that fails validation is logged and treated as missing, so one bad
registration record cannot break a recommendation batch.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from event_matchmaker.gateway.stores import EntityStore, ProfileRow
from event_matchmaker.models.profile import Profile
from event_matchmaker.taxonomy.profile_taxonomy import (
    PROVIDER_CATEGORIES,
    SEEKER_CATEGORIES,
    TEAM_CATEGORIES,
    ProfileCategory,
)
from event_matchmaker.utils.deadline import Deadline, resolve

logger = logging.getLogger(__name__)


class EntityGateway:
    """Read-only, validated access to profiles.

    Args:
        store: Any ``EntityStore`` implementation.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _validate(self, row: ProfileRow) -> Optional[Profile]:
        try:
            return Profile.model_validate(dict(row))
        except ValidationError as exc:
            logger.warning(
                "Rejected malformed profile row %s: %d validation error(s)",
                row.get("profile_id", "<no id>"), exc.error_count(),
                extra={"error_kind": "validation"},
            )
            return None

    def _validate_all(self, rows: Iterable[ProfileRow]) -> list[Profile]:
        return [p for p in (self._validate(r) for r in rows) if p is not None]

    def get_profile(self, profile_id: str, deadline: Optional[Deadline] = None) -> Optional[Profile]:
        resolve(deadline).check("entity_store.find_by_id")
        row = self._store.find_by_id(profile_id)
        if row is None:
            return None
        return self._validate(row)

    def get_profile_or_placeholder(
        self, profile_id: str, deadline: Optional[Deadline] = None
    ) -> Profile:
        """Return the profile, or an id-only placeholder if it is unknown."""
        profile = self.get_profile(profile_id, deadline)
        if profile is None:
            logger.info("Profile %s not found; scoring with defaults.", profile_id)
            return Profile.placeholder(profile_id)
        return profile

    def find_by_category(
        self, category: ProfileCategory, deadline: Optional[Deadline] = None
    ) -> list[Profile]:
        resolve(deadline).check("entity_store.find_by_category")
        return self._validate_all(self._store.find_by_category(category.value))

    def _find_by_categories(
        self, categories: Iterable[ProfileCategory], deadline: Optional[Deadline]
    ) -> list[Profile]:
        profiles: list[Profile] = []
        for category in sorted(categories):
            profiles.extend(self.find_by_category(category, deadline))
        return profiles

    def find_providers(self, deadline: Optional[Deadline] = None) -> list[Profile]:
        return self._find_by_categories(PROVIDER_CATEGORIES, deadline)

    def find_seekers(self, deadline: Optional[Deadline] = None) -> list[Profile]:
        return self._find_by_categories(SEEKER_CATEGORIES, deadline)

    def find_team_members(
        self,
        organization: Optional[str],
        exclude_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> list[Profile]:
        """Exhibitor/organizer colleagues in ``organization``, minus ``exclude_id``."""
        if not organization:
            return []
        resolve(deadline).check("entity_store.find_by_organization")
        members = self._validate_all(self._store.find_by_organization(organization))
        return [
            m for m in members
            if m.profile_id != exclude_id and m.category in TEAM_CATEGORIES
        ]

    def count_industry_peers(
        self,
        industry: Optional[str],
        exclude_ids: Sequence[str] = (),
        deadline: Optional[Deadline] = None,
    ) -> Optional[int]:
        """Profiles sharing ``industry``; ``None`` when the industry is unknown."""
        if not industry:
            return None
        resolve(deadline).check("entity_store.count_by_industry")
        return self._store.count_by_industry(industry, exclude_ids)
