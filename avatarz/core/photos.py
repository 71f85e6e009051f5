"""
photos.py — The caller's library of uploaded source photos.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..auth.models import CurrentUser
from .config import BUCKET_INPUT_PHOTOS, BUCKET_PHOTO_THUMBNAILS, TABLE_PHOTOS
from .exceptions import AvatarzError, NotFound
from .imaging import extension_for, validate_image
from .supabase_client import SupabaseClient, SupabaseError
from .workers import storage_path

logger = logging.getLogger(__name__)


def _with_urls(row: dict, admin_db: SupabaseClient) -> dict[str, Any]:
    photo = dict(row)
    try:
        photo["url"] = admin_db.create_signed_url(BUCKET_INPUT_PHOTOS, row["storage_path"])
    except SupabaseError as exc:
        logger.warning("Could not sign photo %s: %s", row.get("id"), exc)
        photo["url"] = None
    thumb = row.get("thumbnail_path")
    photo["thumbnail_url"] = admin_db.public_url(BUCKET_PHOTO_THUMBNAILS, thumb) if thumb else None
    return photo


def upload_photo(
    user: CurrentUser,
    data: bytes,
    filename: Optional[str],
    content_type: Optional[str],
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    """
    Store an uploaded photo and record it in the library.

    The square thumbnail is built later by the photo_thumbnails queue.
    """
    validate_image(data)
    mime_type = content_type or "image/jpeg"
    path = storage_path(user.id, f".{extension_for(mime_type, filename)}")

    try:
        admin_db.upload(BUCKET_INPUT_PHOTOS, path, data, content_type=mime_type)
    except SupabaseError as exc:
        logger.error("Photo upload failed for %s: %s", user.id, exc)
        raise AvatarzError("Failed to upload photo") from exc

    try:
        row = db.insert(TABLE_PHOTOS, {
            "user_id": user.id,
            "storage_path": path,
            "filename": filename or path.rsplit("/", 1)[-1],
            "mime_type": mime_type,
            "file_size": len(data),
        })
    except SupabaseError as exc:
        logger.error("Photo row insert failed for %s: %s", path, exc)
        try:
            admin_db.remove(BUCKET_INPUT_PHOTOS, [path])
        except SupabaseError as cleanup_exc:
            logger.error("Rollback of %s failed: %s", path, cleanup_exc)
        raise AvatarzError("Failed to save photo") from exc

    logger.info("Photo %s uploaded by %s", row.get("id"), user.id)
    return _with_urls(row, admin_db)


def list_photos(user: CurrentUser, db: SupabaseClient, admin_db: SupabaseClient) -> list[dict]:
    rows = db.select(TABLE_PHOTOS, {"user_id": user.id}, order="created_at.desc")
    return [_with_urls(row, admin_db) for row in rows]


def remove_photo_files(admin_db: SupabaseClient, photo: dict) -> None:
    """Delete the original (errors propagate) and the thumbnail (best effort)."""
    admin_db.remove(BUCKET_INPUT_PHOTOS, [photo["storage_path"]])
    if photo.get("thumbnail_path"):
        try:
            admin_db.remove(BUCKET_PHOTO_THUMBNAILS, [photo["thumbnail_path"]])
        except SupabaseError as exc:
            logger.warning("Thumbnail delete failed for photo %s: %s", photo.get("id"), exc)


def delete_photo(user: CurrentUser, photo_id: str, db: SupabaseClient, admin_db: SupabaseClient) -> None:
    photo = db.get_photo(photo_id, user.id)
    if not photo:
        raise NotFound("Photo not found")

    try:
        remove_photo_files(admin_db, photo)
    except SupabaseError as exc:
        logger.error("Photo delete failed for %s: %s", photo_id, exc)
        raise AvatarzError("Failed to delete photo") from exc

    db.delete(TABLE_PHOTOS, {"id": photo_id, "user_id": user.id})
    logger.info("Photo %s deleted by %s", photo_id, user.id)
