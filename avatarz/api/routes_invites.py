"""
api/routes_invites.py — Invite codes: create, list, check and redeem; admin invitations.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..auth.models import CurrentUser
from ..core.invites import check_invite, create_invite, invite_user, list_my_invite_codes, redeem_invite
from ..core.quota import fetch_invite_quota_for_display
from ..core.supabase_client import SupabaseClient
from .dependencies import get_current_user, get_service_client, get_user_client, require_admin
from .dto import CreateInviteRequest, InviteQuotaResponse, InviteUserRequest, RedeemInviteRequest

router = APIRouter()


@router.post("/functions/v1/generate-invite-code")
def generate_invite_code(
    request: Request,
    body: Optional[CreateInviteRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    max_uses = body.max_uses if body else 1
    return create_invite(user, db, admin_db, max_uses=max_uses, origin=request.headers.get("origin"))


@router.get("/functions/v1/redeem-invite")
def check_invite_code(
    code: Optional[str] = None,
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return check_invite(admin_db, code)


@router.post("/functions/v1/redeem-invite")
def redeem_invite_code(
    body: RedeemInviteRequest,
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return redeem_invite(admin_db, body.code, body.email)


@router.post("/functions/v1/invite-user")
def admin_invite_user(
    body: InviteUserRequest,
    _admin: CurrentUser = Depends(require_admin),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return invite_user(admin_db, body.email, body.tier)


@router.get("/api/invites")
def my_invite_codes(db: SupabaseClient = Depends(get_user_client)):
    return list_my_invite_codes(db)


@router.get("/api/invites/quota", response_model=InviteQuotaResponse)
def my_invite_quota(db: SupabaseClient = Depends(get_user_client)):
    return InviteQuotaResponse(**fetch_invite_quota_for_display(db).model_dump())
