"""
account.py — Per-user settings, onboarding, avatar options and full data deletion.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from ..auth.models import CurrentUser
from .config import STYLES_CACHE_MAX_ITEMS, STYLES_CACHE_TTL, TABLE_GENERATIONS, TABLE_PHOTOS
from .exceptions import AvatarzError, InvalidRequest
from .gallery import remove_generation_files
from .models import Style, StyleCategory
from .photos import remove_photo_files
from .prompt_builder import CROP_TYPES, CUSTOM_PLACEMENT, NAME_PLACEMENTS
from .supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

AGE_GROUPS = ("under_18", "18_plus")

FALLBACK_CATEGORIES = [
    {"id": "animated", "label": "Animated", "emoji": "🎬", "description": "Cartoons, anime, and 3D characters"},
    {"id": "artistic", "label": "Artistic", "emoji": "🎨", "description": "Hand-drawn and painterly styles"},
    {"id": "professional", "label": "Professional", "emoji": "💼", "description": "Business and corporate looks"},
    {"id": "custom", "label": "Custom", "emoji": "✨", "description": "Write your own prompt"},
]


# ── Settings (RPC) ────────────────────────────────────────────────────────────

def _checked_rpc(db: SupabaseClient, name: str, params: Optional[dict], failure: str) -> dict:
    """Call an RPC returning `{success, error}` and raise on `success: false`."""
    data = db.rpc(name, params) or {}
    if not data.get("success"):
        raise InvalidRequest(data.get("error") or failure)
    return data


def get_settings(db: SupabaseClient) -> dict[str, Any]:
    data = db.rpc("get_user_settings", idempotent=True) or {}
    if data.get("error"):
        raise InvalidRequest(data["error"])
    return {
        "default_name": data.get("default_name"),
        "is_private_account": bool(data.get("is_private_account")),
        "age_group": data.get("age_group"),
        "onboarding_completed": bool(data.get("onboarding_completed")),
        "tier": data.get("tier"),
    }


def update_settings(
    db: SupabaseClient,
    default_name: Optional[str] = None,
    is_private_account: Optional[bool] = None,
) -> dict:
    return _checked_rpc(
        db,
        "update_user_settings",
        {"p_default_name": default_name, "p_is_private_account": is_private_account},
        "Failed to update settings",
    )


def upgrade_to_adult(db: SupabaseClient) -> dict:
    return _checked_rpc(db, "upgrade_to_adult", None, "Failed to upgrade age group")


def complete_onboarding(db: SupabaseClient, age_group: str) -> dict:
    if age_group not in AGE_GROUPS:
        raise InvalidRequest("Invalid age group")
    return _checked_rpc(db, "complete_onboarding", {"p_age_group": age_group}, "Failed to complete onboarding")


# ── Delete everything ─────────────────────────────────────────────────────────

def delete_all_data(user: CurrentUser, db: SupabaseClient, admin_db: SupabaseClient) -> dict[str, Any]:
    """
    Remove every photo and generation the caller owns.

    Per-item failures are logged and skipped; the report shows how far it got.
    """
    try:
        photos = db.select(TABLE_PHOTOS, {"user_id": user.id}, columns="id,storage_path,thumbnail_path")
    except SupabaseError as exc:
        raise AvatarzError(f"Failed to fetch photos: {exc.message}") from exc
    try:
        generations = db.select(
            TABLE_GENERATIONS, {"user_id": user.id},
            columns="id,output_storage_path,thumbnail_storage_path",
        )
    except SupabaseError as exc:
        raise AvatarzError(f"Failed to fetch avatars: {exc.message}") from exc

    photos_deleted = 0
    for photo in photos:
        try:
            remove_photo_files(admin_db, photo)
            db.delete(TABLE_PHOTOS, {"id": photo["id"]})
            photos_deleted += 1
        except SupabaseError as exc:
            logger.error("Failed to delete photo %s: %s", photo["id"], exc)

    avatars_deleted = 0
    for generation in generations:
        try:
            remove_generation_files(admin_db, generation)
            db.delete(TABLE_GENERATIONS, {"id": generation["id"]})
            avatars_deleted += 1
        except SupabaseError as exc:
            logger.error("Failed to delete generation %s: %s", generation["id"], exc)

    logger.info(
        "Deleted data for %s: %d/%d photos, %d/%d avatars",
        user.id, photos_deleted, len(photos), avatars_deleted, len(generations),
    )
    return {
        "phase": "complete",
        "photos_total": len(photos),
        "photos_deleted": photos_deleted,
        "avatars_total": len(generations),
        "avatars_deleted": avatars_deleted,
    }


# ── Avatar options ────────────────────────────────────────────────────────────

def static_options() -> dict[str, list]:
    """Name placements and crop types, as served by GET generate-avatar."""
    return {"namePlacements": NAME_PLACEMENTS, "cropTypes": CROP_TYPES}


def avatar_options(db: SupabaseClient) -> dict[str, Any]:
    placements = [*NAME_PLACEMENTS, CUSTOM_PLACEMENT]
    try:
        rows = db.list_categories()
    except SupabaseError as exc:
        logger.error("Failed to fetch avatar options: %s", exc)
        return {
            "categories": FALLBACK_CATEGORIES,
            "namePlacements": placements,
            "cropTypes": CROP_TYPES,
            "fallback": True,
        }

    categories = [
        StyleCategory(**row).model_dump(include={"id", "label", "emoji", "description"})
        for row in rows
    ]
    return {"categories": categories, "namePlacements": placements, "cropTypes": CROP_TYPES}


class StylesCache:
    """Process-local TTL cache of styles per category, bounded to max_items entries."""

    def __init__(self, ttl_seconds: float = STYLES_CACHE_TTL, max_items: int = STYLES_CACHE_MAX_ITEMS):
        self.ttl_seconds = float(ttl_seconds)
        self.max_items = int(max_items)
        self._store: dict[str, tuple[float, list[Style]]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Optional[list[Style]]:
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            expires_at, value = item
            if expires_at <= time.monotonic():
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: list[Style]) -> None:
        with self._lock:
            if key not in self._store and len(self._store) >= self.max_items:
                oldest = min(self._store.items(), key=lambda kv: kv[1][0])[0]
                self._store.pop(oldest, None)
            self._store[key] = (time.monotonic() + self.ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


_styles_cache = StylesCache()


def styles_for_category(db: SupabaseClient, category_id: Optional[str]) -> list[Style]:
    if not category_id or category_id == "custom":
        return []
    cached = _styles_cache.get(category_id)
    if cached is not None:
        return cached

    styles = [Style(**row) for row in db.list_styles(category_id)]
    # Unknown ids come back empty; keep them out of the cache.
    if styles:
        _styles_cache.set(category_id, styles)
    return styles


def clear_styles_cache() -> None:
    _styles_cache.clear()
