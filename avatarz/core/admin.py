"""
admin.py — Allowlist management and dashboard data for administrators.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..auth.models import AllowlistEntry
from .config import TABLE_ALLOWLIST
from .exceptions import AvatarzError, Conflict, InvalidRequest
from .supabase_client import PG_UNIQUE_VIOLATION, SupabaseClient, SupabaseError
from .validation import is_valid_email

logger = logging.getLogger(__name__)

RECENT_GENERATIONS_PAGE_SIZE = 20


# ── Allowlist ─────────────────────────────────────────────────────────────────

def list_allowlist(admin_db: SupabaseClient) -> list[AllowlistEntry]:
    rows = admin_db.select(TABLE_ALLOWLIST, order="created_at.desc")
    return [AllowlistEntry.from_row(row) for row in rows]


def add_to_allowlist(admin_db: SupabaseClient, email: str, tier_id: Optional[str] = None) -> AllowlistEntry:
    normalized = (email or "").lower().strip()
    if not is_valid_email(normalized):
        raise InvalidRequest("A valid email is required")

    row: dict[str, Any] = {"email": normalized}
    if tier_id:
        row["tier_id"] = tier_id
    try:
        created = admin_db.insert(TABLE_ALLOWLIST, row)
    except SupabaseError as exc:
        if exc.pg_code == PG_UNIQUE_VIOLATION:
            raise Conflict("Email already in allowlist") from exc
        logger.error("Allowlist insert failed for %s: %s", normalized, exc)
        raise AvatarzError("Failed to add email") from exc

    logger.info("Allowlisted %s", normalized)
    return AllowlistEntry.from_row(created)


def remove_from_allowlist(admin_db: SupabaseClient, entry_id: str) -> None:
    try:
        admin_db.delete(TABLE_ALLOWLIST, {"id": entry_id})
    except SupabaseError as exc:
        logger.error("Allowlist delete failed for %s: %s", entry_id, exc)
        raise AvatarzError("Failed to remove email") from exc


# ── Dashboard ─────────────────────────────────────────────────────────────────

def user_stats(db: SupabaseClient) -> list[dict]:
    return db.rpc("admin_get_user_stats", idempotent=True) or []


def recent_generations(
    db: SupabaseClient,
    page: int = 0,
    page_size: int = RECENT_GENERATIONS_PAGE_SIZE,
) -> dict[str, Any]:
    """One page of recent generations; one extra row is fetched to detect more."""
    page = max(0, page)
    rows = db.rpc(
        "admin_get_recent_generations",
        {"p_limit": page_size + 1, "p_offset": page * page_size},
        idempotent=True,
    ) or []
    return {
        "generations": rows[:page_size],
        "page": page,
        "page_size": page_size,
        "has_more": len(rows) > page_size,
    }
