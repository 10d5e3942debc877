"""
Profile repository — SQLite entity store.

Serves raw rows (nested into the ``Profile`` field shape) to the entity
gateway, which owns validation.  ``upsert`` exists for seeding and tests;
in production profiles are written by the registration system.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional, Sequence

from event_matchmaker.db.repositories.base import BaseRepository
from event_matchmaker.models.profile import Profile
from event_matchmaker.utils.time_utils import from_iso, to_iso

logger = logging.getLogger(__name__)

_COLUMNS = (
    "profile_id", "display_name", "organization", "category", "industry",
    "organization_size", "interests", "budget", "position", "biography",
    "sponsor_tier", "timezone_offset_hours", "email_notifications",
    "email", "phone", "linkedin", "twitter", "website",
    "last_active_at", "created_at", "updated_at",
)


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    """Reshape a flat row into the nested ``Profile`` field layout."""
    data = {key: row[key] for key in row.keys()}
    data["contact"] = {"email": data.pop("email"), "phone": data.pop("phone")}
    data["social_links"] = {
        "linkedin": data.pop("linkedin"),
        "twitter": data.pop("twitter"),
        "website": data.pop("website"),
    }
    data["email_notifications"] = bool(data["email_notifications"])
    for key in ("last_active_at", "created_at", "updated_at"):
        data[key] = from_iso(data[key])
    if data["display_name"] is None:
        data["display_name"] = ""
    return data


class ProfileRepository(BaseRepository):
    """Implements ``EntityStore`` over the ``profiles`` table."""

    table = "profiles"

    def upsert(self, profile: Profile) -> None:
        """Insert or replace a profile (seeding only)."""
        values = (
            profile.profile_id, profile.display_name, profile.organization,
            profile.category.value if profile.category else None,
            profile.industry, profile.organization_size, profile.interests,
            profile.budget, profile.position, profile.biography,
            profile.sponsor_tier.value if profile.sponsor_tier else None,
            profile.timezone_offset_hours, int(profile.email_notifications),
            profile.contact.email, profile.contact.phone,
            profile.social_links.linkedin, profile.social_links.twitter,
            profile.social_links.website,
            to_iso(profile.last_active_at), to_iso(profile.created_at),
            to_iso(profile.updated_at),
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self.execute(
            f"INSERT OR REPLACE INTO profiles ({', '.join(_COLUMNS)}) VALUES ({placeholders});",
            values,
        )

    def find_by_id(self, profile_id: str) -> Optional[dict[str, Any]]:
        row = self.fetchone("SELECT * FROM profiles WHERE profile_id = ?;", (profile_id,))
        return _row_to_dict(row) if row is not None else None

    def find_by_category(self, category: str) -> list[dict[str, Any]]:
        rows = self.fetchall(
            "SELECT * FROM profiles WHERE category = ? ORDER BY profile_id;", (category,)
        )
        return [_row_to_dict(r) for r in rows]

    def find_by_organization(self, organization: str) -> list[dict[str, Any]]:
        rows = self.fetchall(
            """
            SELECT * FROM profiles
             WHERE organization = ? COLLATE NOCASE
             ORDER BY profile_id;
            """,
            (organization,),
        )
        return [_row_to_dict(r) for r in rows]

    def count_by_industry(self, industry: str, exclude_ids: Sequence[str] = ()) -> int:
        """Profiles sharing ``industry`` (case-insensitive), minus ``exclude_ids``."""
        sql = "SELECT COUNT(*) FROM profiles WHERE industry = ?"
        params: list[Any] = [industry]
        if exclude_ids:
            sql += f" AND profile_id NOT IN ({', '.join('?' for _ in exclude_ids)})"
            params.extend(exclude_ids)
        return int(self.scalar(sql + ";", tuple(params)))

    def count(self) -> int:
        return int(self.scalar("SELECT COUNT(*) FROM profiles;"))
