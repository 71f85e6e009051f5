"""
api/routes_generate.py — Avatar generation, image extension and the options that feed the wizard.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth.models import CurrentUser
from ..core.account import avatar_options, static_options, styles_for_category
from ..core.models import ExtendImageRequest, GenerateAvatarRequest
from ..core.supabase_client import SupabaseClient
from ..core.workers import extend_image, generate_avatar
from .dependencies import get_current_user, get_service_client, get_user_client
from .dto import StyleItem

router = APIRouter()


@router.get("/functions/v1/generate-avatar")
def generate_avatar_options():
    """Static name placements and crop types."""
    return static_options()


@router.post("/functions/v1/generate-avatar")
def generate_avatar_endpoint(
    body: GenerateAvatarRequest,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return generate_avatar(user, body, db, admin_db)


@router.post("/functions/v1/extend-image")
def extend_image_endpoint(
    body: ExtendImageRequest,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return extend_image(user, body, db, admin_db)


@router.get("/api/options")
def get_avatar_options(db: SupabaseClient = Depends(get_user_client)):
    return avatar_options(db)


@router.get("/api/categories/{category_id}/styles", response_model=list[StyleItem])
def get_category_styles(category_id: str, db: SupabaseClient = Depends(get_user_client)):
    return [StyleItem(**style.model_dump()) for style in styles_for_category(db, category_id)]
