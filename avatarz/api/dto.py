"""
api/dto.py — Pydantic request/response models for the API endpoints.

All models use camelCase on the wire (see CamelModel).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from ..core.models import CamelModel


# ── Me / quotas ───────────────────────────────────────────────────────────────

class MeResponse(CamelModel):
    id: str
    email: str
    is_admin: bool
    tier_id: Optional[str]
    is_private_account: bool
    created_at: Optional[datetime]


class QuotaResponse(CamelModel):
    limit: int
    used: int
    remaining: int
    is_admin: bool = False


class InviteQuotaResponse(CamelModel):
    can_create: bool
    tier: str
    used: int
    limit: int
    remaining: int
    reason: Optional[str] = None


# ── Invites ───────────────────────────────────────────────────────────────────

class CreateInviteRequest(CamelModel):
    max_uses: int = Field(default=1, ge=1)


class RedeemInviteRequest(CamelModel):
    code: Optional[str] = None
    email: Optional[str] = None


class InviteUserRequest(CamelModel):
    email: Optional[str] = None
    tier: Optional[str] = None


# ── Photos ────────────────────────────────────────────────────────────────────

class PhotoThumbnailRequest(CamelModel):
    photo_id: Optional[str] = None


class PhotoItem(CamelModel):
    id: str
    storage_path: str
    thumbnail_path: Optional[str] = None
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    created_at: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None


# ── Generations ───────────────────────────────────────────────────────────────

class GenerationItem(CamelModel):
    id: str
    input_photo_id: Optional[str] = None
    parent_generation_id: Optional[str] = None
    output_storage_path: str
    thumbnail_storage_path: Optional[str] = None
    style: Optional[str] = None
    crop_type: Optional[str] = None
    name_text: Optional[str] = None
    name_placement: Optional[str] = None
    custom_style: Optional[str] = None
    custom_placement: Optional[str] = None
    cost_usd: Optional[float] = None
    is_public: bool = False
    share_url: Optional[str] = None
    created_at: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None


class VisibilityRequest(CamelModel):
    is_public: bool


# ── Account ───────────────────────────────────────────────────────────────────

class SettingsResponse(CamelModel):
    default_name: Optional[str] = None
    is_private_account: bool = False
    age_group: Optional[str] = None
    onboarding_completed: bool = False
    tier: Optional[str] = None


class SettingsUpdateRequest(CamelModel):
    default_name: Optional[str] = None
    is_private_account: Optional[bool] = None


class OnboardingRequest(CamelModel):
    age_group: str


class DeleteDataReport(CamelModel):
    phase: str
    photos_total: int
    photos_deleted: int
    avatars_total: int
    avatars_deleted: int


class StyleItem(CamelModel):
    id: str
    category_id: Optional[str] = None
    label: str
    emoji: Optional[str] = None
    description: Optional[str] = None
    prompt: str = ""
    input_schema: Optional[dict[str, Any]] = None


# ── Admin ─────────────────────────────────────────────────────────────────────

class AllowlistAddRequest(CamelModel):
    email: str
    tier_id: Optional[str] = None


class AllowlistItem(CamelModel):
    id: str
    email: str
    tier_id: Optional[str] = None
    created_at: Optional[datetime] = None


class RecentGenerationsResponse(CamelModel):
    generations: list[dict[str, Any]]
    page: int
    page_size: int
    has_more: bool
