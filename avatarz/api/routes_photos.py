"""
api/routes_photos.py — Photo library endpoints and the photo thumbnail function.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from kombu.exceptions import OperationalError

from ..auth.models import CurrentUser
from ..core.photos import delete_photo, list_photos, upload_photo
from ..core.supabase_client import SupabaseClient
from ..core.workers import generate_photo_thumbnail
from ..queue.tasks import generate_photo_thumbnail_task
from .dependencies import get_current_user, get_service_client, get_user_client
from .dto import PhotoItem, PhotoThumbnailRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/photos", response_model=list[PhotoItem])
def get_photos(
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return [PhotoItem(**p) for p in list_photos(user, db, admin_db)]


@router.post("/api/photos", response_model=PhotoItem, status_code=201)
def post_photo(
    file: UploadFile = File(...),
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    photo = upload_photo(user, file.file.read(), file.filename, file.content_type, db, admin_db)
    try:
        generate_photo_thumbnail_task.delay(user.id, photo["id"])
    except OperationalError as exc:
        # The library shows the original until a thumbnail exists
        logger.warning("Could not enqueue thumbnail for photo %s: %s", photo["id"], exc)
    return PhotoItem(**photo)


@router.delete("/api/photos/{photo_id}", status_code=204)
def remove_photo(
    photo_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    delete_photo(user, photo_id, db, admin_db)


@router.post("/functions/v1/generate-photo-thumbnail")
def photo_thumbnail(
    body: PhotoThumbnailRequest,
    user: CurrentUser = Depends(get_current_user),
    db: SupabaseClient = Depends(get_user_client),
    admin_db: SupabaseClient = Depends(get_service_client),
):
    return generate_photo_thumbnail(user.id, body.photo_id, db, admin_db)
