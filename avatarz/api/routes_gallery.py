"""
api/routes_gallery.py — Gallery endpoints and the public avatar showcase.
"""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Response

from ..auth.models import CurrentUser
from ..core.gallery import (
    delete_generation,
    download_generation,
    get_generation,
    list_generations,
    public_avatars,
    set_visibility,
)
from ..core.supabase_client import SupabaseClient
from .dependencies import get_current_user, get_service_client, get_user_client
from .dto import GenerationItem, VisibilityRequest

router = APIRouter()


@router.get("/api/generations", response_model=list[GenerationItem])
def get_generations(
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return [GenerationItem(**g) for g in list_generations(user, db, admin_db)]


@router.get("/api/generations/{generation_id}", response_model=GenerationItem)
def get_single_generation(
    generation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return GenerationItem(**get_generation(user, generation_id, db, admin_db))


@router.delete("/api/generations/{generation_id}", status_code=204)
def remove_generation(
    generation_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    delete_generation(user, generation_id, db, admin_db)


@router.get("/api/generations/{generation_id}/download")
def download(
    generation_id: str,
    format: Literal["png", "jpeg"] = "png",
    quality: float = Query(default=0.85, gt=0, le=1),
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    data, mime_type, filename = download_generation(user, generation_id, db, admin_db, format, quality)
    return Response(
        content=data,
        media_type=mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.patch("/api/generations/{generation_id}/visibility", response_model=GenerationItem)
def update_visibility(
    generation_id: str,
    body: VisibilityRequest,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return GenerationItem(**set_visibility(user, generation_id, body.is_public, db, admin_db))


@router.get("/functions/v1/public-avatars")
def get_public_avatars(
    count: Optional[str] = None,
    style_id: Optional[str] = None,
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return {"avatars": public_avatars(admin_db, count, style_id)}
