"""
api/routes_admin.py — Admin-only endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..auth.models import CurrentUser
from ..core.admin import (
    RECENT_GENERATIONS_PAGE_SIZE,
    add_to_allowlist,
    list_allowlist,
    recent_generations,
    remove_from_allowlist,
    user_stats,
)
from ..core.supabase_client import SupabaseClient
from .dependencies import get_service_client, get_user_client, require_admin
from .dto import AllowlistAddRequest, AllowlistItem, RecentGenerationsResponse

router = APIRouter()


@router.get("/api/admin/allowlist", response_model=list[AllowlistItem])
def admin_list_allowlist(
    _admin: CurrentUser = Depends(require_admin),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return [
        AllowlistItem(id=e.id, email=e.email, tier_id=e.tier_id, created_at=e.created_at)
        for e in list_allowlist(admin_db)
    ]


@router.post("/api/admin/allowlist", response_model=AllowlistItem, status_code=201)
def admin_add_allowlist(
    body: AllowlistAddRequest,
    _admin: CurrentUser = Depends(require_admin),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    entry = add_to_allowlist(admin_db, body.email, body.tier_id)
    return AllowlistItem(id=entry.id, email=entry.email, tier_id=entry.tier_id, created_at=entry.created_at)


@router.delete("/api/admin/allowlist/{entry_id}", status_code=204)
def admin_remove_allowlist(
    entry_id: str,
    _admin: CurrentUser = Depends(require_admin),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    remove_from_allowlist(admin_db, entry_id)


@router.get("/api/admin/stats")
def admin_user_stats(
    _admin: CurrentUser = Depends(require_admin),
    db: SupabaseClient = Depends(get_user_client),
):
    # The stats RPCs check is_admin themselves, so they run as the caller
    return user_stats(db)


@router.get("/api/admin/generations", response_model=RecentGenerationsResponse)
def admin_recent_generations(
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=RECENT_GENERATIONS_PAGE_SIZE, ge=1, le=100),
    _admin: CurrentUser = Depends(require_admin),
    db: SupabaseClient = Depends(get_user_client),
):
    return RecentGenerationsResponse(**recent_generations(db, page, page_size))
