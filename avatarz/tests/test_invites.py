"""
test_invites.py — Invite code creation, public checks, redemption and admin invitations.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from avatarz.auth.token_utils import generate_invite_code, invite_expiry, normalize_invite_code
from avatarz.core.config import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH
from avatarz.core.exceptions import (
    AvatarzError,
    EmailAlreadyRegistered,
    InvalidRequest,
    InviteExhausted,
    InviteExpired,
    InviteNotFound,
    QuotaExceeded,
)
from avatarz.core.invites import check_invite, create_invite, invite_url, invite_user, redeem_invite
from avatarz.core.supabase_client import SupabaseError

_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _invite_row(**overrides) -> dict:
    row = {
        "code": "ABCD2345",
        "expires_at": (_NOW + timedelta(days=3)).isoformat(),
        "max_uses": 3,
        "times_used": 1,
    }
    row.update(overrides)
    return row


@pytest.fixture
def redeemable(mock_admin_db):
    mock_admin_db.email_registered.return_value = False
    mock_admin_db.claim_invite_code.return_value = {
        "success": True, "tier_granted": "standard", "created_by": "creator-id",
    }
    return mock_admin_db


# ---------------------------------------------------------------------------
# Codes
# ---------------------------------------------------------------------------

def test_generated_codes_use_unambiguous_alphabet():
    code = generate_invite_code()
    assert len(code) == INVITE_CODE_LENGTH
    assert set(code) <= set(INVITE_CODE_ALPHABET)
    assert not set(code) & set("01OI")


def test_codes_are_normalized():
    assert normalize_invite_code("  abcd2345 ") == "ABCD2345"


def test_expiry_is_seven_days_out():
    assert invite_expiry(_NOW) == _NOW + timedelta(days=7)


def test_invite_url_uses_origin():
    assert invite_url("ABCD2345", "https://app.example.com/") == "https://app.example.com/#/invite/ABCD2345"


# ---------------------------------------------------------------------------
# create_invite
# ---------------------------------------------------------------------------

def test_create_invite(user, mock_db, mock_admin_db):
    mock_admin_db.insert.side_effect = lambda table, row: row

    result = create_invite(user, mock_db, mock_admin_db, max_uses=2, origin="https://app.example.com")

    table, row = mock_admin_db.insert.call_args.args
    assert table == "invite_codes"
    assert row["created_by"] == user.id
    assert row["max_uses"] == 2
    assert result["url"] == f"https://app.example.com/#/invite/{row['code']}"
    assert result["quota"] == {"used": 1, "limit": 3, "remaining": 2}


def test_create_invite_blocked_by_quota(user, mock_db, mock_admin_db):
    mock_db.get_invite_quota.return_value = {
        "can_create": False, "tier": "standard", "reason": "Daily invite limit reached",
    }
    with pytest.raises(QuotaExceeded, match="Daily invite limit reached"):
        create_invite(user, mock_db, mock_admin_db)
    mock_admin_db.insert.assert_not_called()


def test_create_invite_retries_code_collisions(user, mock_db, mock_admin_db):
    mock_admin_db.find_invite_code.side_effect = [{"code": "TAKEN"}, None]
    mock_admin_db.insert.side_effect = lambda table, row: row

    create_invite(user, mock_db, mock_admin_db)

    assert mock_admin_db.find_invite_code.call_count == 2


def test_create_invite_gives_up_after_collisions(user, mock_db, mock_admin_db):
    mock_admin_db.find_invite_code.return_value = {"code": "TAKEN"}
    with pytest.raises(AvatarzError, match="unique code"):
        create_invite(user, mock_db, mock_admin_db)


# ---------------------------------------------------------------------------
# check_invite
# ---------------------------------------------------------------------------

def test_check_valid_invite(mock_admin_db):
    mock_admin_db.select_one.return_value = _invite_row()
    assert check_invite(mock_admin_db, "abcd2345", now=_NOW) == {"valid": True, "remaining": 2}
    assert mock_admin_db.select_one.call_args.args[1] == {"code": "ABCD2345"}


def test_check_requires_code(mock_admin_db):
    with pytest.raises(InvalidRequest, match="Code required"):
        check_invite(mock_admin_db, None)


def test_check_unknown_code(mock_admin_db):
    mock_admin_db.select_one.return_value = None
    with pytest.raises(InviteNotFound) as exc_info:
        check_invite(mock_admin_db, "NOPE2345", now=_NOW)
    assert exc_info.value.http_status == 404
    assert exc_info.value.extra == {"valid": False}


def test_check_exhausted_before_expired(mock_admin_db):
    mock_admin_db.select_one.return_value = _invite_row(
        times_used=3, expires_at=(_NOW - timedelta(days=1)).isoformat(),
    )
    with pytest.raises(InviteExhausted) as exc_info:
        check_invite(mock_admin_db, "ABCD2345", now=_NOW)
    assert exc_info.value.http_status == 410


def test_check_expired(mock_admin_db):
    mock_admin_db.select_one.return_value = _invite_row(expires_at=(_NOW - timedelta(seconds=1)).isoformat())
    with pytest.raises(InviteExpired):
        check_invite(mock_admin_db, "ABCD2345", now=_NOW)


# ---------------------------------------------------------------------------
# redeem_invite
# ---------------------------------------------------------------------------

def test_redeem_invite(redeemable):
    result = redeem_invite(redeemable, "abcd2345", " New@Example.com ")

    assert result["success"] is True
    redeemable.claim_invite_code.assert_called_once_with("ABCD2345", "new@example.com")
    redeemable.upsert_allowlist.assert_called_once_with("new@example.com", "standard")
    kwargs = redeemable.invite_user_by_email.call_args.kwargs
    assert kwargs["data"] == {"invite_code": "ABCD2345", "invited_by": "creator-id"}


@pytest.mark.parametrize("code,email", [(None, "a@b.co"), ("ABCD2345", None)])
def test_redeem_requires_code_and_email(redeemable, code, email):
    with pytest.raises(InvalidRequest, match="Code and email required"):
        redeem_invite(redeemable, code, email)


def test_redeem_rejects_bad_email(redeemable):
    with pytest.raises(InvalidRequest, match="Invalid email format"):
        redeem_invite(redeemable, "ABCD2345", "not-an-email")


def test_redeem_registered_email_consumes_nothing(redeemable):
    redeemable.email_registered.return_value = True
    with pytest.raises(EmailAlreadyRegistered):
        redeem_invite(redeemable, "ABCD2345", "old@example.com")
    redeemable.claim_invite_code.assert_not_called()


def test_redeem_failed_claim_reports_reason(redeemable):
    redeemable.claim_invite_code.return_value = {"success": False, "error": "Invite code has expired"}
    with pytest.raises(InvalidRequest, match="expired"):
        redeem_invite(redeemable, "ABCD2345", "new@example.com")
    redeemable.invite_user_by_email.assert_not_called()


def test_redeem_allowlist_conflict_is_tolerated(redeemable):
    redeemable.upsert_allowlist.side_effect = SupabaseError("duplicate", status_code=409, pg_code="23505")
    assert redeem_invite(redeemable, "ABCD2345", "new@example.com")["success"] is True


def test_redeem_email_failure_keeps_slot(redeemable):
    redeemable.invite_user_by_email.side_effect = SupabaseError("smtp down", status_code=500)
    with pytest.raises(AvatarzError, match="Failed to send invitation email"):
        redeem_invite(redeemable, "ABCD2345", "new@example.com")
    redeemable.claim_invite_code.assert_called_once()


# ---------------------------------------------------------------------------
# invite_user (admin)
# ---------------------------------------------------------------------------

def test_admin_invite_defaults_to_premium(mock_admin_db):
    result = invite_user(mock_admin_db, "Friend@Example.com")
    assert result["tier"] == "premium"
    mock_admin_db.upsert_allowlist.assert_called_once_with("friend@example.com", "premium")


def test_admin_invite_rejects_unknown_tier(mock_admin_db):
    with pytest.raises(InvalidRequest, match="Invalid tier"):
        invite_user(mock_admin_db, "friend@example.com", "gold")


def test_admin_invite_existing_user(mock_admin_db):
    mock_admin_db.invite_user_by_email.side_effect = SupabaseError(
        "A user with this email address has already been registered", status_code=422,
    )
    with pytest.raises(InvalidRequest, match="User already exists"):
        invite_user(mock_admin_db, "friend@example.com", "standard")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

def test_redeem_check_route_is_public(client, mock_admin_db):
    mock_admin_db.select_one.return_value = None
    resp = client.get("/functions/v1/redeem-invite", params={"code": "NOPE2345"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"]["code"] == "INVITE_NOT_FOUND"
    assert body["valid"] is False


def test_generate_invite_code_route(client, as_user, user, mock_admin_db):
    as_user(user)
    mock_admin_db.insert.side_effect = lambda table, row: row
    resp = client.post(
        "/functions/v1/generate-invite-code",
        json={"maxUses": 2},
        headers={"Origin": "https://app.example.com"},
    )
    assert resp.status_code == 200
    assert resp.json()["url"].startswith("https://app.example.com/#/invite/")


def test_invite_user_route_requires_admin(client, as_user, user):
    as_user(user)
    resp = client.post("/functions/v1/invite-user", json={"email": "friend@example.com"})
    assert resp.status_code == 403
