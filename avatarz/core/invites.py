"""
invites.py — Invite codes: creation under quota, public checks, redemption, admin invitations.

Claiming a code is atomic in the database (RPC claim_invite_code); everything
else here is orchestration around it.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..auth.models import CurrentUser, InviteCode
from ..auth.token_utils import generate_invite_code, invite_expiry, normalize_invite_code
from .config import (
    ADMIN_INVITE_TIERS,
    DEFAULT_INVITE_TIER,
    INVITE_CODE_ATTEMPTS,
    PUBLIC_SITE_URL,
    TABLE_INVITE_CODES,
)
from .exceptions import (
    AvatarzError,
    EmailAlreadyRegistered,
    InvalidRequest,
    InviteExhausted,
    InviteExpired,
    InviteNotFound,
    QuotaExceeded,
)
from .quota import after_invite, fetch_invite_quota
from .supabase_client import SupabaseClient, SupabaseError
from .validation import is_valid_email

logger = logging.getLogger(__name__)

_ALREADY_REGISTERED = "already been registered"


def invite_url(code: str, origin: Optional[str] = None) -> str:
    return f"{(origin or PUBLIC_SITE_URL).rstrip('/')}/#/invite/{code}"


# ── Creation ──────────────────────────────────────────────────────────────────

def _unique_code(admin_db: SupabaseClient) -> str:
    for attempt in range(INVITE_CODE_ATTEMPTS):
        code = generate_invite_code()
        if not admin_db.find_invite_code(code):
            return code
        logger.info("Invite code collision on attempt %d", attempt + 1)
    raise AvatarzError("Failed to generate unique code")


def create_invite(
    user: CurrentUser,
    db: SupabaseClient,
    admin_db: SupabaseClient,
    max_uses: int = 1,
    origin: Optional[str] = None,
) -> dict:
    """
    Create an invite code for the caller.

    Raises:
        QuotaExceeded: the caller's invite quota does not allow another code.
    """
    try:
        quota = fetch_invite_quota(db)
    except SupabaseError as exc:
        logger.error("Invite quota check failed for %s: %s", user.id, exc)
        raise AvatarzError("Failed to check quota") from exc

    if not quota.can_create:
        raise QuotaExceeded(
            quota.reason or "Daily invite limit reached",
            extra={"quota": quota.model_dump()},
        )

    code = _unique_code(admin_db)
    try:
        row = admin_db.insert(TABLE_INVITE_CODES, {
            "code": code,
            "created_by": user.id,
            "expires_at": invite_expiry().isoformat(),
            "max_uses": max(1, int(max_uses)),
        })
    except SupabaseError as exc:
        logger.error("Invite insert failed: %s", exc)
        raise AvatarzError("Failed to create invite") from exc

    logger.info("Invite %s created by %s", code, user.id)
    return {
        "code": row.get("code", code),
        "url": invite_url(row.get("code", code), origin),
        "expires_at": row.get("expires_at"),
        "quota": after_invite(quota),
    }


def list_my_invite_codes(db: SupabaseClient) -> list[dict]:
    return db.rpc("get_my_invite_codes", idempotent=True) or []


# ── Public check ──────────────────────────────────────────────────────────────

def check_invite(admin_db: SupabaseClient, code: Optional[str], now: Optional[datetime] = None) -> dict:
    if not code:
        raise InvalidRequest("Code required")

    row = admin_db.select_one(
        TABLE_INVITE_CODES,
        {"code": normalize_invite_code(code)},
        columns="code,expires_at,max_uses,times_used",
    )
    if not row:
        raise InviteNotFound("Invite code not found", extra={"valid": False})

    invite = InviteCode.from_row(row)
    if invite.exhausted:
        raise InviteExhausted("All invite slots have been used", extra={"valid": False})
    if invite.expired(now or datetime.now(timezone.utc)):
        raise InviteExpired("Invite expired", extra={"valid": False})

    return {"valid": True, "remaining": invite.remaining}


# ── Redemption ────────────────────────────────────────────────────────────────

def redeem_invite(admin_db: SupabaseClient, code: Optional[str], email: Optional[str]) -> dict:
    """
    Claim one slot of an invite code for an email and send the sign-up link.

    The slot stays consumed if the invitation email fails.
    """
    if not code or not email:
        raise InvalidRequest("Code and email required")
    if not is_valid_email(email):
        raise InvalidRequest("Invalid email format")

    normalized_email = email.lower().strip()
    normalized_code = normalize_invite_code(code)

    if admin_db.email_registered(normalized_email):
        raise EmailAlreadyRegistered("Email already registered. Please log in instead.")

    try:
        claim = admin_db.claim_invite_code(normalized_code, normalized_email)
    except SupabaseError as exc:
        logger.error("claim_invite_code failed: %s", exc)
        raise AvatarzError("Failed to claim invite") from exc

    if not claim or not claim.get("success"):
        raise InvalidRequest((claim or {}).get("error") or "Failed to claim invite")

    tier = claim.get("tier_granted") or DEFAULT_INVITE_TIER
    try:
        admin_db.upsert_allowlist(normalized_email, tier)
    except SupabaseError as exc:
        # The address may already be allowlisted
        logger.warning("Allowlist upsert failed for %s: %s", normalized_email, exc)

    try:
        admin_db.invite_user_by_email(
            normalized_email,
            data={"invite_code": normalized_code, "invited_by": claim.get("created_by")},
            redirect_to=f"{PUBLIC_SITE_URL}/#/",
        )
    except SupabaseError as exc:
        logger.error("Invitation email failed for %s: %s", normalized_email, exc)
        if _ALREADY_REGISTERED in exc.message:
            raise EmailAlreadyRegistered("Email already registered. Please log in instead.") from exc
        raise AvatarzError("Failed to send invitation email") from exc

    logger.info("Invite %s redeemed (tier=%s)", normalized_code, tier)
    return {"success": True, "message": "Check your email for a magic link to complete signup"}


# ── Admin invitation ──────────────────────────────────────────────────────────

def invite_user(admin_db: SupabaseClient, email: Optional[str], tier: Optional[str] = None) -> dict:
    if not email or not is_valid_email(email):
        raise InvalidRequest("A valid email is required")
    user_tier = tier or "premium"
    if user_tier not in ADMIN_INVITE_TIERS:
        raise InvalidRequest("Invalid tier. Must be premium or standard.")

    normalized_email = email.lower().strip()
    try:
        admin_db.upsert_allowlist(normalized_email, user_tier)
    except SupabaseError as exc:
        logger.warning("Allowlist upsert failed for %s: %s", normalized_email, exc)

    try:
        admin_db.invite_user_by_email(normalized_email, redirect_to=f"{PUBLIC_SITE_URL}/#/")
    except SupabaseError as exc:
        if _ALREADY_REGISTERED in exc.message:
            raise InvalidRequest("User already exists") from exc
        logger.error("Admin invitation failed for %s: %s", normalized_email, exc)
        raise AvatarzError("Failed to send invitation email") from exc

    return {"success": True, "message": f"Invitation sent to {normalized_email}", "tier": user_tier}
