"""
api/routes_account.py — Current user, quota, settings, onboarding and data deletion.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth.models import CurrentUser
from ..core.account import complete_onboarding, delete_all_data, get_settings, update_settings, upgrade_to_adult
from ..core.quota import fetch_user_quota_for_display
from ..core.supabase_client import SupabaseClient
from .dependencies import get_current_user, get_service_client, get_user_client
from .dto import (
    DeleteDataReport,
    MeResponse,
    OnboardingRequest,
    QuotaResponse,
    SettingsResponse,
    SettingsUpdateRequest,
)

router = APIRouter()


@router.get("/api/me", response_model=MeResponse)
def get_me(user: CurrentUser = Depends(get_current_user)):
    return MeResponse(
        id=user.id,
        email=user.email,
        is_admin=user.is_admin,
        tier_id=user.tier_id,
        is_private_account=user.is_private_account,
        created_at=user.created_at,
    )


@router.get("/api/quota", response_model=QuotaResponse)
def get_quota(db: SupabaseClient = Depends(get_user_client)):
    return QuotaResponse(**fetch_user_quota_for_display(db).model_dump())


@router.get("/api/settings", response_model=SettingsResponse)
def read_settings(db: SupabaseClient = Depends(get_user_client)):
    return SettingsResponse(**get_settings(db))


@router.patch("/api/settings", response_model=SettingsResponse)
def patch_settings(body: SettingsUpdateRequest, db: SupabaseClient = Depends(get_user_client)):
    update_settings(db, body.default_name, body.is_private_account)
    return SettingsResponse(**get_settings(db))


@router.post("/api/settings/upgrade-age")
def upgrade_age(db: SupabaseClient = Depends(get_user_client)):
    upgrade_to_adult(db)
    return {"success": True, "ageGroup": "18_plus"}


@router.post("/api/onboarding")
def onboarding(body: OnboardingRequest, db: SupabaseClient = Depends(get_user_client)):
    complete_onboarding(db, body.age_group)
    return {"success": True}


@router.post("/api/account/delete-data", response_model=DeleteDataReport)
def delete_data(
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return DeleteDataReport(**delete_all_data(user, db, admin_db))
