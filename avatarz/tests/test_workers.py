"""
test_workers.py — Generation, extension and thumbnail jobs with mocked backend and image API.
"""
from __future__ import annotations

from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from avatarz.core.exceptions import AvatarzError, InvalidRequest, NotFound, QuotaExceeded
from avatarz.core.models import ExtendImageRequest, GenerateAvatarRequest
from avatarz.core.supabase_client import SupabaseError
from avatarz.core.workers import extend_image, generate_avatar, generate_photo_thumbnail, storage_path
from avatarz.tests.factories import GENERATION_ID, PHOTO_ID, USER_ID, make_png, make_user

_CARTOON = {
    "id": "cartoon",
    "category_id": "animated",
    "label": "Cartoon",
    "prompt": "Transform into a vibrant cartoon character.",
}


def _request(**overrides) -> GenerateAvatarRequest:
    fields = {"image_data": None, "style": "cartoon", "category_id": "animated"}
    fields.update(overrides)
    return GenerateAvatarRequest(**fields)


def _inserted_row(admin_db) -> dict:
    return admin_db.insert_generation.call_args.args[0]


def _parent(**overrides) -> dict:
    row = {
        "id": GENERATION_ID,
        "user_id": USER_ID,
        "input_photo_id": PHOTO_ID,
        "output_storage_path": f"{USER_ID}/1_parent.png",
        "style": "cartoon",
        "crop_type": "portrait",
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# generate_avatar
# ---------------------------------------------------------------------------

def test_generate_avatar_happy_path(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON

    result = generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)

    assert result["success"] is True
    assert result["image"].startswith("data:image/png;base64,")
    assert result["generationId"] == GENERATION_ID
    assert result["quota"] == {"limit": 20, "used": 4, "remaining": 16, "is_admin": False}
    assert result["shareUrl"] is None

    prompt = mock_image_api.call_args.kwargs["prompt"]
    assert "vibrant cartoon" in prompt

    buckets = [c.args[0] for c in mock_admin_db.upload.call_args_list]
    assert buckets == ["avatars", "avatar-thumbnails"]

    row = _inserted_row(mock_admin_db)
    assert row["user_id"] == USER_ID
    assert row["style"] == "cartoon"
    assert row["total_tokens"] == 5000
    assert row["cost_usd"] > 0
    assert row["is_public"] is False


def test_generate_avatar_quota_exhausted_skips_image_api(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_user_quota.return_value = {"limit": 20, "used": 20, "remaining": 0, "is_admin": False}

    with pytest.raises(QuotaExceeded) as exc_info:
        generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)

    assert exc_info.value.extra["quota"]["remaining"] == 0
    mock_image_api.assert_not_called()
    mock_admin_db.upload.assert_not_called()


def test_generate_avatar_quota_rpc_failure(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_user_quota.side_effect = SupabaseError("boom", status_code=500)

    with pytest.raises(AvatarzError, match="Failed to check generation quota"):
        generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)
    mock_image_api.assert_not_called()


def test_generate_avatar_unknown_style(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    with pytest.raises(InvalidRequest, match="Invalid style option"):
        generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)
    mock_image_api.assert_not_called()


def test_generate_avatar_required_style_input(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = dict(
        _CARTOON,
        id="jersey",
        input_schema={"fields": [{"id": "team", "label": "Team name", "required": True}]},
    )
    with pytest.raises(InvalidRequest, match="Team name is required"):
        generate_avatar(user, _request(image_data=png_data_url, style="jersey"), mock_db, mock_admin_db)


def test_generate_avatar_custom_style(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    req = _request(image_data=png_data_url, style="custom", category_id="custom", custom_style="A watercolor fox")

    generate_avatar(user, req, mock_db, mock_admin_db)

    mock_db.get_style.assert_not_called()
    assert "A watercolor fox" in mock_image_api.call_args.kwargs["prompt"]
    row = _inserted_row(mock_admin_db)
    assert row["style"] == "custom"
    assert row["custom_style"] == "A watercolor fox"


def test_generate_avatar_from_stored_photo(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON
    mock_db.get_photo.return_value = {
        "id": PHOTO_ID, "storage_path": f"{USER_ID}/photo.jpg", "mime_type": "image/jpeg",
    }
    mock_admin_db.download.return_value = make_png()

    generate_avatar(user, _request(input_photo_id=PHOTO_ID), mock_db, mock_admin_db)

    mock_admin_db.download.assert_called_once_with("input-photos", f"{USER_ID}/photo.jpg")
    assert mock_image_api.call_args.kwargs["mime_type"] == "image/jpeg"
    assert _inserted_row(mock_admin_db)["input_photo_id"] == PHOTO_ID


def test_generate_avatar_missing_stored_photo(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON
    mock_db.get_photo.return_value = None

    with pytest.raises(NotFound, match="Photo not found"):
        generate_avatar(user, _request(input_photo_id=PHOTO_ID), mock_db, mock_admin_db)


def test_generate_avatar_public_needs_publishing_rights(png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON
    req = _request(image_data=png_data_url, is_public=True)

    public = generate_avatar(make_user(), req, mock_db, mock_admin_db)
    assert public["shareUrl"] == public["thumbnailUrl"]
    assert _inserted_row(mock_admin_db)["is_public"] is True

    private = generate_avatar(make_user(tier_id="private"), req, mock_db, mock_admin_db)
    assert private["shareUrl"] is None
    assert _inserted_row(mock_admin_db)["is_public"] is False


def test_generate_avatar_edit_mode(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = _parent()
    mock_admin_db.download.return_value = make_png()
    req = GenerateAvatarRequest(edit_generation_id=GENERATION_ID, edit_prompt="add a red hat")

    generate_avatar(user, req, mock_db, mock_admin_db)

    mock_admin_db.download.assert_called_once_with("avatars", f"{USER_ID}/1_parent.png")
    assert "add a red hat" in mock_image_api.call_args.kwargs["prompt"]
    row = _inserted_row(mock_admin_db)
    assert row["parent_generation_id"] == GENERATION_ID
    assert row["style"] == "cartoon"
    assert row["custom_style"] == "add a red hat"
    assert row["input_photo_id"] == PHOTO_ID


def test_generate_avatar_edit_of_foreign_avatar(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = None
    req = GenerateAvatarRequest(edit_generation_id=GENERATION_ID, edit_prompt="add a hat")

    with pytest.raises(NotFound, match="access denied"):
        generate_avatar(user, req, mock_db, mock_admin_db)
    mock_image_api.assert_not_called()


def test_generate_avatar_upload_failure(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON
    mock_admin_db.upload.side_effect = SupabaseError("bucket gone", status_code=500)

    with pytest.raises(AvatarzError, match="Failed to save avatar"):
        generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)
    mock_admin_db.insert_generation.assert_not_called()


def test_generate_avatar_survives_insert_failure(user, png_data_url, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_style.return_value = _CARTOON
    mock_admin_db.insert_generation.side_effect = SupabaseError("insert failed", status_code=500)

    result = generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)

    assert result["success"] is True
    assert result["generationId"] is None


@pytest.mark.parametrize("error", [Image.DecompressionBombError("too many pixels"), ValueError("bad mode")])
def test_generate_avatar_survives_thumbnail_failure(
    error, user, png_data_url, mock_db, mock_admin_db, mock_image_api,
):
    mock_db.get_style.return_value = _CARTOON

    with patch("avatarz.core.workers.make_thumbnail", side_effect=error):
        result = generate_avatar(user, _request(image_data=png_data_url), mock_db, mock_admin_db)

    assert result["success"] is True
    assert result["generationId"] == GENERATION_ID
    assert _inserted_row(mock_admin_db)["thumbnail_storage_path"] is None
    assert [c.args[0] for c in mock_admin_db.upload.call_args_list] == ["avatars"]


# ---------------------------------------------------------------------------
# extend_image
# ---------------------------------------------------------------------------

def _uploaded(admin_db, bucket: str) -> bytes:
    for c in admin_db.upload.call_args_list:
        if c.args[0] == bucket:
            return c.args[2]
    raise AssertionError(f"nothing uploaded to {bucket}")


def test_extend_to_wallpaper_ratio(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = _parent()
    mock_admin_db.download.return_value = make_png()
    mock_image_api.return_value = mock_image_api.return_value.model_copy(
        update={"image_bytes": make_png(1536, 1024)}
    )
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="16:9", prompt="Extend the scene")

    result = extend_image(user, req, mock_db, mock_admin_db)

    assert mock_image_api.call_args.kwargs["size"] == "1536x1024"
    assert result["aspectRatio"] == "16:9"
    assert result["wallpaperPath"].endswith("_wallpaper_16x9.png")
    assert Image.open(BytesIO(_uploaded(mock_admin_db, "avatars"))).size == (1536, 864)
    assert Image.open(BytesIO(_uploaded(mock_admin_db, "avatar-thumbnails"))).size == (300, 169)

    row = _inserted_row(mock_admin_db)
    assert row["style"] == "wallpaper-16x9"
    assert row["crop_type"] == "wallpaper"
    assert row["parent_generation_id"] == GENERATION_ID
    assert row["is_public"] is True


def test_extend_to_banner_is_cropped_to_exact_size(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = _parent()
    mock_admin_db.download.return_value = make_png()
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="linkedin", prompt="Extend")

    result = extend_image(user, req, mock_db, mock_admin_db)

    assert "1584×396" in mock_image_api.call_args.kwargs["prompt"]
    assert result["wallpaperPath"].endswith("_wallpaper_linkedin.png")
    assert Image.open(BytesIO(_uploaded(mock_admin_db, "avatars"))).size == (1584, 396)
    assert Image.open(BytesIO(_uploaded(mock_admin_db, "avatar-thumbnails"))).size == (300, 75)


def test_extend_survives_thumbnail_failure(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = _parent()
    mock_admin_db.download.return_value = make_png()
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="16:9", prompt="Extend the scene")

    with patch("avatarz.core.workers.resize_exact", side_effect=Image.DecompressionBombError("too many pixels")):
        result = extend_image(user, req, mock_db, mock_admin_db)

    assert result["success"] is True
    assert result["thumbnailUrl"] is None
    assert _inserted_row(mock_admin_db)["thumbnail_storage_path"] is None


def test_extend_private_account_not_shared(mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = _parent()
    mock_admin_db.download.return_value = make_png()
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="1:1", prompt="Extend")

    result = extend_image(make_user(is_private_account=True), req, mock_db, mock_admin_db)

    assert result["shareUrl"] is None
    assert _inserted_row(mock_admin_db)["is_public"] is False


def test_extend_invalid_ratio(user, mock_db, mock_admin_db, mock_image_api):
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="21:9", prompt="Extend")
    with pytest.raises(InvalidRequest):
        extend_image(user, req, mock_db, mock_admin_db)
    mock_image_api.assert_not_called()


def test_extend_missing_source(user, mock_db, mock_admin_db, mock_image_api):
    mock_db.get_generation.return_value = None
    req = ExtendImageRequest(generation_id=GENERATION_ID, aspect_ratio="16:9", prompt="Extend")
    with pytest.raises(NotFound):
        extend_image(user, req, mock_db, mock_admin_db)


# ---------------------------------------------------------------------------
# generate_photo_thumbnail
# ---------------------------------------------------------------------------

def test_photo_thumbnail_generated(mock_db, mock_admin_db):
    mock_db.get_photo.return_value = {"id": PHOTO_ID, "storage_path": f"{USER_ID}/p.jpg", "thumbnail_path": None}
    mock_admin_db.download.return_value = make_png(800, 600)

    result = generate_photo_thumbnail(USER_ID, PHOTO_ID, mock_db, mock_admin_db)

    assert result["success"] is True
    assert result["thumbnailPath"].endswith("_thumb.jpg")
    thumb = Image.open(BytesIO(_uploaded(mock_admin_db, "photo-thumbnails")))
    assert thumb.size == (300, 300)
    mock_admin_db.update.assert_called_once_with(
        "photos", {"thumbnail_path": result["thumbnailPath"]}, {"id": PHOTO_ID}
    )


def test_photo_thumbnail_skipped_when_present(mock_db, mock_admin_db):
    mock_db.get_photo.return_value = {
        "id": PHOTO_ID, "storage_path": f"{USER_ID}/p.jpg", "thumbnail_path": f"{USER_ID}/t.jpg",
    }

    result = generate_photo_thumbnail(USER_ID, PHOTO_ID, mock_db, mock_admin_db)

    assert result["skipped"] is True
    mock_admin_db.download.assert_not_called()
    mock_admin_db.upload.assert_not_called()


def test_photo_thumbnail_requires_id(mock_db, mock_admin_db):
    with pytest.raises(InvalidRequest, match="photoId is required"):
        generate_photo_thumbnail(USER_ID, "", mock_db, mock_admin_db)


def test_photo_thumbnail_row_update_failure_is_tolerated(mock_db, mock_admin_db):
    mock_db.get_photo.return_value = {"id": PHOTO_ID, "storage_path": f"{USER_ID}/p.jpg"}
    mock_admin_db.download.return_value = make_png()
    mock_admin_db.update.side_effect = SupabaseError("rls", status_code=403)

    assert generate_photo_thumbnail(USER_ID, PHOTO_ID, mock_db, mock_admin_db)["success"] is True


def test_storage_path_layout():
    path = storage_path(USER_ID, "_thumb.jpg")
    prefix, _, name = path.partition("/")
    assert prefix == USER_ID
    assert name.endswith("_thumb.jpg")
    assert name.split("_")[0].isdigit()
