"""
gallery.py — Listing, downloading, sharing and deleting generated avatars.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..auth.models import CurrentUser, parse_timestamp
from .config import (
    BUCKET_AVATAR_THUMBNAILS,
    BUCKET_AVATARS,
    PUBLIC_AVATARS_DEFAULT,
    PUBLIC_AVATARS_MAX,
    PUBLIC_AVATARS_MIN,
    TABLE_GENERATIONS,
)
from .exceptions import AvatarzError, Forbidden, NotFound
from .imaging import compress_image
from .supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _signed(admin_db: SupabaseClient, bucket: str, path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    try:
        return admin_db.create_signed_url(bucket, path)
    except SupabaseError as exc:
        logger.warning("Could not sign %s/%s: %s", bucket, path, exc)
        return None


def _with_urls(row: dict, admin_db: SupabaseClient) -> dict[str, Any]:
    generation = dict(row)
    url = _signed(admin_db, BUCKET_AVATARS, row.get("output_storage_path"))
    thumb = _signed(admin_db, BUCKET_AVATAR_THUMBNAILS, row.get("thumbnail_storage_path"))
    generation["url"] = url
    generation["thumbnail_url"] = thumb or url
    return generation


def _owned(user: CurrentUser, generation_id: str, db: SupabaseClient) -> dict:
    row = db.get_generation(generation_id, user.id)
    if not row:
        raise NotFound("Avatar not found")
    return row


def download_filename_for(generation: dict, fmt: str = "png") -> str:
    """`avatar_<style>_<YYYY-MM-DD>.<ext>`"""
    created = parse_timestamp(generation.get("created_at"))
    day = created.date().isoformat() if created else "unknown"
    ext = "jpg" if fmt == "jpeg" else "png"
    return f"avatar_{generation.get('style') or 'custom'}_{day}.{ext}"


# ── Operations ────────────────────────────────────────────────────────────────

def list_generations(user: CurrentUser, db: SupabaseClient, admin_db: SupabaseClient) -> list[dict]:
    rows = db.select(TABLE_GENERATIONS, {"user_id": user.id}, order="created_at.desc")
    return [_with_urls(row, admin_db) for row in rows]


def get_generation(
    user: CurrentUser,
    generation_id: str,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    return _with_urls(_owned(user, generation_id, db), admin_db)


def remove_generation_files(admin_db: SupabaseClient, generation: dict) -> None:
    """Delete the avatar (errors propagate) and its thumbnail (best effort)."""
    admin_db.remove(BUCKET_AVATARS, [generation["output_storage_path"]])
    if generation.get("thumbnail_storage_path"):
        try:
            admin_db.remove(BUCKET_AVATAR_THUMBNAILS, [generation["thumbnail_storage_path"]])
        except SupabaseError as exc:
            logger.warning("Thumbnail delete failed for generation %s: %s", generation.get("id"), exc)


def delete_generation(
    user: CurrentUser,
    generation_id: str,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> None:
    generation = _owned(user, generation_id, db)
    try:
        remove_generation_files(admin_db, generation)
    except SupabaseError as exc:
        logger.error("Avatar delete failed for %s: %s", generation_id, exc)
        raise AvatarzError("Failed to delete avatar") from exc

    db.delete(TABLE_GENERATIONS, {"id": generation_id, "user_id": user.id})
    logger.info("Generation %s deleted by %s", generation_id, user.id)


def download_generation(
    user: CurrentUser,
    generation_id: str,
    db: SupabaseClient,
    admin_db: SupabaseClient,
    fmt: str = "png",
    quality: float = 0.85,
) -> tuple[bytes, str, str]:
    """
    Returns:
        (encoded bytes, mime type, download filename)
    """
    generation = _owned(user, generation_id, db)
    try:
        original = admin_db.download(BUCKET_AVATARS, generation["output_storage_path"])
    except SupabaseError as exc:
        logger.error("Download failed for generation %s: %s", generation_id, exc)
        raise AvatarzError("Failed to download avatar") from exc

    data, mime_type = compress_image(original, fmt, quality)
    return data, mime_type, download_filename_for(generation, fmt)


def set_visibility(
    user: CurrentUser,
    generation_id: str,
    is_public: bool,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    if is_public and not user.can_publish:
        raise Forbidden("Private accounts cannot share avatars publicly")

    generation = _owned(user, generation_id, db)
    thumb = generation.get("thumbnail_storage_path")
    share_url = admin_db.public_url(BUCKET_AVATAR_THUMBNAILS, thumb) if (is_public and thumb) else None

    rows = db.update(
        TABLE_GENERATIONS,
        {"is_public": is_public, "share_url": share_url},
        {"id": generation_id, "user_id": user.id},
    )
    updated = rows[0] if rows else {**generation, "is_public": is_public, "share_url": share_url}
    return _with_urls(updated, admin_db)


# ── Public showcase ───────────────────────────────────────────────────────────

def clamp_public_count(raw: Any) -> int:
    """Non-numeric or zero → default; otherwise clamp to the allowed range."""
    try:
        count = int(raw)
    except (TypeError, ValueError):
        count = PUBLIC_AVATARS_DEFAULT
    if count == 0:
        count = PUBLIC_AVATARS_DEFAULT
    return min(max(count, PUBLIC_AVATARS_MIN), PUBLIC_AVATARS_MAX)


def public_avatars(admin_db: SupabaseClient, count: Any = None, style_id: Optional[str] = None) -> list[dict]:
    try:
        rows = admin_db.rpc(
            "get_random_public_avatars_by_style",
            {"p_count": clamp_public_count(count), "p_style_id": style_id},
            idempotent=True,
        ) or []
    except SupabaseError as exc:
        logger.error("get_random_public_avatars_by_style failed: %s", exc)
        raise AvatarzError("Failed to fetch public avatars") from exc

    avatars = []
    for row in rows:
        url = _signed(admin_db, BUCKET_AVATAR_THUMBNAILS, row.get("thumbnail_path"))
        if url:
            avatars.append({"id": row.get("avatar_id"), "thumbnailUrl": url, "style": row.get("avatar_style")})
    return avatars
