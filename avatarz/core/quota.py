"""
quota.py — Daily generation / invite quota snapshots and their post-use arithmetic.
"""
from __future__ import annotations

import logging

from .config import DEFAULT_DAILY_LIMIT
from .exceptions import QuotaExceeded
from .models import InviteQuota, UserQuota
from .supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

UNLIMITED = -1

DEFAULT_USER_QUOTA = UserQuota(
    limit=DEFAULT_DAILY_LIMIT,
    used=0,
    remaining=DEFAULT_DAILY_LIMIT,
    is_admin=False,
)

QUOTA_EXHAUSTED_MESSAGE = "Daily generation limit reached. Try again tomorrow!"


def fetch_user_quota(db: SupabaseClient) -> UserQuota:
    """Quota for the caller of a user-scoped client. Errors propagate."""
    return UserQuota(**db.get_user_quota())


def fetch_user_quota_for_display(db: SupabaseClient) -> UserQuota:
    """Like fetch_user_quota but falls back to the default snapshot."""
    try:
        return fetch_user_quota(db)
    except SupabaseError as exc:
        logger.warning("get_user_quota failed, using default: %s", exc)
        return DEFAULT_USER_QUOTA.model_copy()


def fetch_invite_quota(db: SupabaseClient) -> InviteQuota:
    return InviteQuota(**db.get_invite_quota())


def fetch_invite_quota_for_display(db: SupabaseClient) -> InviteQuota:
    try:
        return fetch_invite_quota(db)
    except SupabaseError as exc:
        logger.warning("get_invite_quota failed: %s", exc)
        return InviteQuota(can_create=False, tier="standard", reason="Failed to fetch quota")


def is_exhausted(quota: UserQuota) -> bool:
    return quota.remaining <= 0 and not quota.is_admin


def ensure_available(quota: UserQuota) -> None:
    """Raise QuotaExceeded (429) with the snapshot attached when nothing is left."""
    if is_exhausted(quota):
        raise QuotaExceeded(
            QUOTA_EXHAUSTED_MESSAGE,
            extra={"quota": {"limit": quota.limit, "used": quota.used, "remaining": 0}},
        )


def after_generation(quota: UserQuota) -> UserQuota:
    return UserQuota(
        limit=quota.limit,
        used=quota.used + 1,
        remaining=UNLIMITED if quota.is_admin else max(0, quota.remaining - 1),
        is_admin=quota.is_admin,
    )


def after_invite(quota: InviteQuota) -> dict:
    return {
        "used": quota.used + 1,
        "limit": quota.limit,
        "remaining": UNLIMITED if quota.limit == UNLIMITED else quota.remaining - 1,
    }
