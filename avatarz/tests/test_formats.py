"""
test_formats.py — Aspect ratio and social banner helpers.
"""
from __future__ import annotations

import pytest

from avatarz.core.formats import (
    SOCIAL_BANNERS,
    aspect_ratio_css,
    aspect_suffix,
    display_ratio_for,
    generation_ratio_for,
    is_banner_format,
    is_valid_aspect,
    parse_ratio,
    thumbnail_size_for,
)
from avatarz.core.openai_client import size_for_ratio


def test_banners_generate_at_16_9():
    assert all(b.generation_ratio == "16:9" for b in SOCIAL_BANNERS.values())
    assert generation_ratio_for("twitter") == "16:9"
    assert generation_ratio_for("3:4") == "3:4"


def test_banner_crop_percent():
    assert SOCIAL_BANNERS["linkedin"].crop_percent == 33
    assert SOCIAL_BANNERS["facebook"].crop_percent == 23
    assert SOCIAL_BANNERS["youtube"].crop_percent == 0


def test_validity():
    assert is_valid_aspect("9:16")
    assert is_valid_aspect("facebook")
    assert not is_valid_aspect("21:9")
    assert is_banner_format("linkedin")
    assert not is_banner_format("16:9")
    assert not is_banner_format(None)


def test_parse_ratio():
    assert parse_ratio("4:3") == (4, 3)
    with pytest.raises(ValueError):
        parse_ratio("wide")
    with pytest.raises(ValueError):
        parse_ratio("0:1")


def test_display_and_suffix():
    assert display_ratio_for("linkedin") == "1584x396 (linkedin banner)"
    assert display_ratio_for("16:9") == "16:9"
    assert aspect_suffix("16:9") == "16x9"
    assert aspect_suffix("twitter") == "twitter"


def test_css_ratio_defaults_to_square():
    assert aspect_ratio_css("linkedin") == "4/1"
    assert aspect_ratio_css(None) == "1/1"
    assert aspect_ratio_css("weird") == "1/1"


@pytest.mark.parametrize("ratio,expected", [
    ("16:9", (300, 169)),
    ("9:16", (169, 300)),
    ("1:1", (300, 300)),
    ("linkedin", (300, 75)),
])
def test_wallpaper_thumbnail_size(ratio, expected):
    assert thumbnail_size_for(ratio) == expected


@pytest.mark.parametrize("ratio,size", [
    ("1:1", "1024x1024"),
    ("16:9", "1536x1024"),
    ("3:4", "1024x1536"),
    ("facebook", "1536x1024"),
    (None, "1024x1024"),
])
def test_image_api_size_mapping(ratio, size):
    assert size_for_ratio(ratio) == size
