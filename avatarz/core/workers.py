"""
workers.py — Core job functions: avatar generation, image extension, photo thumbnails.

Each function is self-contained. API routes call them directly; the Celery
tasks in queue/tasks.py call the thumbnail job.
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

from ..auth.models import CurrentUser
from .config import (
    BUCKET_AVATAR_THUMBNAILS,
    BUCKET_AVATARS,
    BUCKET_INPUT_PHOTOS,
    BUCKET_PHOTO_THUMBNAILS,
    TABLE_PHOTOS,
    WALLPAPER_THUMBNAIL_QUALITY,
)
from .exceptions import AvatarzError, ImageGenerationError, InvalidRequest, NotFound
from .formats import SOCIAL_BANNERS, aspect_suffix, parse_ratio, thumbnail_size_for
from .imaging import (
    crop_to_aspect,
    crop_to_ratio,
    decode_data_url,
    make_square_thumbnail,
    make_thumbnail,
    resize_exact,
    to_data_url,
)
from .models import ExtendImageRequest, GenerateAvatarRequest, ImageResult, Style, UserQuota
from .openai_client import calculate_cost, edit_image, size_for_ratio
from .prompt_builder import build_avatar_prompt, build_edit_prompt, build_extension_prompt
from .quota import after_generation, ensure_available, fetch_user_quota
from .supabase_client import SupabaseClient, SupabaseError
from .validation import (
    raise_for_result,
    validate_extend_request,
    validate_generate_request,
    validate_style_inputs,
)

logger = logging.getLogger(__name__)

_THUMB_CACHE_CONTROL = "31536000"


# ── Helpers ───────────────────────────────────────────────────────────────────

def storage_path(user_id: str, suffix: str) -> str:
    """`{uid}/{epoch_ms}_{uuid}{suffix}`, the layout every bucket uses."""
    return f"{user_id}/{int(time.time() * 1000)}_{uuid.uuid4()}{suffix}"


def _checked_quota(db: SupabaseClient) -> UserQuota:
    try:
        quota = fetch_user_quota(db)
    except SupabaseError as exc:
        logger.error("Quota check error: %s", exc)
        raise AvatarzError("Failed to check generation quota") from exc
    ensure_available(quota)
    return quota


def _store_thumbnail(admin_db: SupabaseClient, path: str, thumb_bytes: bytes) -> Optional[str]:
    """Upload a thumbnail; failures are logged and yield None."""
    try:
        admin_db.upload(
            BUCKET_AVATAR_THUMBNAILS, path, thumb_bytes,
            content_type="image/jpeg", cache_control=_THUMB_CACHE_CONTROL,
        )
        return path
    except SupabaseError as exc:
        logger.error("Thumbnail upload error for %s: %s", path, exc)
        return None


def _signed_url(admin_db: SupabaseClient, bucket: str, path: str) -> Optional[str]:
    try:
        return admin_db.create_signed_url(bucket, path)
    except SupabaseError as exc:
        logger.warning("Could not sign %s/%s: %s", bucket, path, exc)
        return None


def _quota_payload(quota: UserQuota) -> dict:
    return after_generation(quota).model_dump()


def _insert_generation(admin_db: SupabaseClient, row: dict) -> Optional[dict]:
    """The image is already stored, so a failed insert is logged, not raised."""
    try:
        return admin_db.insert_generation(row)
    except SupabaseError as exc:
        logger.error("Database insert error for generation of %s: %s", row.get("user_id"), exc)
        return None


def _load_style(db: SupabaseClient, req: GenerateAvatarRequest) -> Optional[Style]:
    if req.is_custom:
        return None
    row = db.get_style(req.style)
    if not row:
        raise InvalidRequest("Invalid style option")
    style = Style(**row)
    if style.has_inputs:
        raise_for_result(validate_style_inputs(style.input_schema, req.input_values))
    return style


def _source_image(
    user: CurrentUser,
    req: GenerateAvatarRequest,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> tuple[str, bytes, Optional[str]]:
    """Returns (mime_type, image bytes, input photo id)."""
    if req.image_data:
        mime_type, data = decode_data_url(req.image_data)
        return mime_type, data, req.input_photo_id

    photo = db.get_photo(req.input_photo_id, user.id)
    if not photo:
        raise NotFound("Photo not found")
    try:
        data = admin_db.download(BUCKET_INPUT_PHOTOS, photo["storage_path"])
    except SupabaseError as exc:
        logger.error("Input photo download failed for %s: %s", req.input_photo_id, exc)
        raise AvatarzError("Failed to download photo") from exc
    return photo.get("mime_type") or "image/jpeg", data, photo["id"]


# ── Avatar generation ─────────────────────────────────────────────────────────

def generate_avatar(
    user: CurrentUser,
    req: GenerateAvatarRequest,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    """
    Generate (or edit) an avatar for the caller.

    Steps:
        1. Quota check (429 with snapshot when exhausted)
        2. Request validation
        3. Resolve source image and style / parent generation
        4. Image API call
        5. Store image + thumbnail, record generation

    Returns:
        Response payload for the client, quota already decremented.
    """
    quota = _checked_quota(db)
    raise_for_result(validate_generate_request(req))

    parent: Optional[dict] = None
    style: Optional[Style] = None
    if req.is_edit:
        parent = db.get_generation(req.edit_generation_id, user.id)
        if not parent:
            raise NotFound("Source avatar not found or access denied")
        try:
            source_bytes = admin_db.download(BUCKET_AVATARS, parent["output_storage_path"])
        except SupabaseError as exc:
            logger.error("Parent download failed for %s: %s", req.edit_generation_id, exc)
            raise AvatarzError("Failed to download source avatar") from exc
        mime_type, input_photo_id = "image/png", parent.get("input_photo_id")
        prompt = build_edit_prompt(req.edit_prompt)
    else:
        mime_type, source_bytes, input_photo_id = _source_image(user, req, db, admin_db)
        style = _load_style(db, req)
        prompt = build_avatar_prompt(req, style)

    logger.info("Generating avatar for %s (edit=%s, style=%s)", user.id, req.is_edit, req.style)
    result = edit_image(prompt=prompt.text, image_bytes=source_bytes, mime_type=mime_type)

    output_path = storage_path(user.id, ".png")
    try:
        admin_db.upload(BUCKET_AVATARS, output_path, result.image_bytes, content_type="image/png")
    except SupabaseError as exc:
        logger.error("Storage upload error: %s", exc)
        raise AvatarzError("Failed to save avatar") from exc

    thumb_path: Optional[str] = None
    try:
        thumb_path = _store_thumbnail(
            admin_db, storage_path(user.id, "_thumb.jpg"), make_thumbnail(result.image_bytes)
        )
    except Exception as exc:
        logger.error("Thumbnail generation failed: %s", exc)

    is_public = req.is_public and user.can_publish
    thumbnail_url = admin_db.public_url(BUCKET_AVATAR_THUMBNAILS, thumb_path) if thumb_path else None
    share_url = thumbnail_url if is_public else None

    row = _generation_row(user, req, parent, style, input_photo_id, output_path, thumb_path, result)
    row.update(is_public=is_public, share_url=share_url)
    generation = _insert_generation(admin_db, row)

    return {
        "success": True,
        "image": to_data_url(result.image_bytes, result.mime_type),
        "generationId": generation.get("id") if generation else None,
        "imageUrl": _signed_url(admin_db, BUCKET_AVATARS, output_path),
        "thumbnailUrl": thumbnail_url,
        "shareUrl": share_url,
        "quota": _quota_payload(quota),
    }


def _generation_row(
    user: CurrentUser,
    req: GenerateAvatarRequest,
    parent: Optional[dict],
    style: Optional[Style],
    input_photo_id: Optional[str],
    output_path: str,
    thumb_path: Optional[str],
    result: ImageResult,
) -> dict:
    if parent:
        style_id, crop_type = parent.get("style"), parent.get("crop_type")
        custom_style = req.edit_prompt
    else:
        style_id = "custom" if req.is_custom else (style.id if style else req.style)
        crop_type = req.crop_type
        custom_style = req.custom_style if req.is_custom else None

    return {
        "user_id": user.id,
        "input_photo_id": input_photo_id,
        "parent_generation_id": parent["id"] if parent else None,
        "output_storage_path": output_path,
        "thumbnail_storage_path": thumb_path,
        "style": style_id,
        "crop_type": crop_type,
        "name_text": req.name if not parent else None,
        "name_placement": req.name_placement if req.name and not parent else None,
        "custom_style": custom_style,
        "custom_placement": req.custom_placement if req.name_placement == "custom" else None,
        "prompt_tokens": result.prompt_tokens,
        "completion_tokens": result.completion_tokens,
        "total_tokens": result.total_tokens,
        "cost_usd": calculate_cost(result.prompt_tokens, result.completion_tokens),
    }


# ── Image extension (wallpapers / banners) ────────────────────────────────────

def _fit_output(image_bytes: bytes, aspect_ratio: str) -> bytes:
    banner = SOCIAL_BANNERS.get(aspect_ratio)
    if banner:
        return crop_to_aspect(image_bytes, banner.width, banner.height)
    return crop_to_ratio(image_bytes, *parse_ratio(aspect_ratio))


def extend_image(
    user: CurrentUser,
    req: ExtendImageRequest,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    """Extend an existing avatar to a wallpaper ratio or a social banner."""
    quota = _checked_quota(db)
    raise_for_result(validate_extend_request(req))

    source = db.get_generation(req.generation_id, user.id)
    if not source:
        raise NotFound("Source avatar not found or access denied")

    try:
        source_bytes = admin_db.download(BUCKET_AVATARS, source["output_storage_path"])
    except SupabaseError as exc:
        logger.error("Download error for %s: %s", source["output_storage_path"], exc)
        raise AvatarzError("Failed to download source avatar") from exc

    prompt = build_extension_prompt(req.prompt, req.aspect_ratio)
    result = edit_image(
        prompt=prompt.text,
        image_bytes=source_bytes,
        mime_type="image/png",
        size=size_for_ratio(req.aspect_ratio),
    )
    try:
        wallpaper = _fit_output(result.image_bytes, req.aspect_ratio)
    except InvalidRequest as exc:
        raise ImageGenerationError("Failed to generate wallpaper. Please try again.") from exc

    suffix = aspect_suffix(req.aspect_ratio)
    wallpaper_path = storage_path(user.id, f"_wallpaper_{suffix}.png")
    try:
        admin_db.upload(BUCKET_AVATARS, wallpaper_path, wallpaper, content_type="image/png")
    except SupabaseError as exc:
        logger.error("Storage upload error: %s", exc)
        raise AvatarzError("Failed to save wallpaper") from exc

    thumb_w, thumb_h = thumbnail_size_for(req.aspect_ratio)
    thumb_path: Optional[str] = None
    try:
        thumb_path = _store_thumbnail(
            admin_db,
            storage_path(user.id, f"_wallpaper_{suffix}_thumb.jpg"),
            resize_exact(wallpaper, thumb_w, thumb_h, WALLPAPER_THUMBNAIL_QUALITY),
        )
    except Exception as exc:
        logger.error("Wallpaper thumbnail generation failed: %s", exc)

    # Wallpapers are public unless the account may not publish
    is_public = user.can_publish
    thumbnail_url = admin_db.public_url(BUCKET_AVATAR_THUMBNAILS, thumb_path) if thumb_path else None
    share_url = thumbnail_url if is_public else None

    generation = _insert_generation(admin_db, {
        "user_id": user.id,
        "input_photo_id": source.get("input_photo_id"),
        "parent_generation_id": source["id"],
        "output_storage_path": wallpaper_path,
        "thumbnail_storage_path": thumb_path,
        "style": f"wallpaper-{suffix}",
        "crop_type": "wallpaper",
        "name_text": None,
        "name_placement": None,
        "custom_style": req.prompt,
        "custom_placement": None,
        "prompt_tokens": result.prompt_tokens,
        "completion_tokens": result.completion_tokens,
        "total_tokens": result.total_tokens,
        "cost_usd": calculate_cost(result.prompt_tokens, result.completion_tokens),
        "is_public": is_public,
        "share_url": share_url,
    })

    return {
        "success": True,
        "image": to_data_url(wallpaper, "image/png"),
        "wallpaperPath": wallpaper_path,
        "wallpaperUrl": _signed_url(admin_db, BUCKET_AVATARS, wallpaper_path),
        "thumbnailPath": thumb_path,
        "thumbnailUrl": thumbnail_url,
        "shareUrl": share_url,
        "generationId": generation.get("id") if generation else None,
        "aspectRatio": req.aspect_ratio,
        "quota": _quota_payload(quota),
    }


# ── Photo thumbnails ──────────────────────────────────────────────────────────

def generate_photo_thumbnail(
    user_id: str,
    photo_id: str,
    db: SupabaseClient,
    admin_db: SupabaseClient,
) -> dict[str, Any]:
    """
    Build the square library thumbnail for an uploaded photo.

    `db` decides visibility: the user-scoped client from the API, the service
    client from the worker (ownership is then enforced by the user_id filter).
    """
    if not photo_id:
        raise InvalidRequest("photoId is required")

    photo = db.get_photo(photo_id, user_id)
    if not photo:
        raise NotFound("Photo not found")

    if photo.get("thumbnail_path"):
        return {
            "success": True,
            "thumbnailPath": photo["thumbnail_path"],
            "thumbnailUrl": admin_db.public_url(BUCKET_PHOTO_THUMBNAILS, photo["thumbnail_path"]),
            "skipped": True,
        }

    try:
        original = admin_db.download(BUCKET_INPUT_PHOTOS, photo["storage_path"])
    except SupabaseError as exc:
        logger.error("Download error for photo %s: %s", photo_id, exc)
        raise AvatarzError("Failed to download photo") from exc

    thumb_bytes = make_square_thumbnail(original)
    thumb_path = storage_path(user_id, "_thumb.jpg")
    try:
        admin_db.upload(
            BUCKET_PHOTO_THUMBNAILS, thumb_path, thumb_bytes,
            content_type="image/jpeg", cache_control=_THUMB_CACHE_CONTROL,
        )
    except SupabaseError as exc:
        logger.error("Thumbnail upload error for photo %s: %s", photo_id, exc)
        raise AvatarzError("Failed to upload thumbnail") from exc

    try:
        admin_db.update(TABLE_PHOTOS, {"thumbnail_path": thumb_path}, {"id": photo_id})
    except SupabaseError as exc:
        # Thumbnail exists in storage; the row can be fixed on the next run
        logger.error("Photo row update failed for %s: %s", photo_id, exc)

    logger.info("Photo thumbnail generated for %s", photo_id)
    return {
        "success": True,
        "thumbnailPath": thumb_path,
        "thumbnailUrl": admin_db.public_url(BUCKET_PHOTO_THUMBNAILS, thumb_path),
    }
