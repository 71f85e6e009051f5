"""
auth/models.py — Pure-Python dataclass models for auth entities.
No ORM dependency; PostgREST rows (dicts) are mapped here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def parse_timestamp(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CurrentUser:
    id: str
    email: str
    access_token: str
    is_admin: bool = False
    tier_id: Optional[str] = None       # standard | premium | private
    is_private_account: bool = False
    created_at: Optional[datetime] = None

    @property
    def can_publish(self) -> bool:
        """Private tier and private accounts never get public avatars."""
        return self.tier_id != "private" and not self.is_private_account

    @classmethod
    def from_row(cls, auth_user: dict, profile: Optional[dict], access_token: str) -> "CurrentUser":
        profile = profile or {}
        return cls(
            id=auth_user["id"],
            email=auth_user.get("email") or profile.get("email") or "",
            access_token=access_token,
            is_admin=bool(profile.get("is_admin")),
            tier_id=profile.get("tier_id"),
            is_private_account=bool(profile.get("is_private_account")),
            created_at=parse_timestamp(profile.get("created_at")),
        )


@dataclass
class AllowlistEntry:
    id: str
    email: str
    tier_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "AllowlistEntry":
        return cls(
            id=row["id"],
            email=row["email"],
            tier_id=row.get("tier_id"),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class InviteCode:
    code: str
    expires_at: datetime
    max_uses: int = 1
    times_used: int = 0
    id: Optional[str] = None
    created_by: Optional[str] = None
    tier_granted: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def remaining(self) -> int:
        return max(0, self.max_uses - self.times_used)

    @property
    def exhausted(self) -> bool:
        return self.times_used >= self.max_uses

    def expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at < (now or datetime.now(timezone.utc))

    @classmethod
    def from_row(cls, row: dict) -> "InviteCode":
        return cls(
            code=row["code"],
            expires_at=parse_timestamp(row["expires_at"]),
            max_uses=int(row.get("max_uses") or 1),
            times_used=int(row.get("times_used") or 0),
            id=row.get("id"),
            created_by=row.get("created_by"),
            tier_granted=row.get("tier_granted"),
            created_at=parse_timestamp(row.get("created_at")),
        )
