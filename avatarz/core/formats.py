"""
formats.py — Aspect ratios, social banner formats and their display helpers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import THUMBNAIL_MAX_SIZE

VALID_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")


@dataclass(frozen=True)
class BannerFormat:
    label: str
    width: int
    height: int
    generation_ratio: str
    generated_height: int
    safe_zone_percent: int      # vertical band the model is told to keep content in

    @property
    def crop_percent(self) -> int:
        """Share of the image removed from each of top and bottom."""
        return int((100 - self.safe_zone_percent) / 2 + 0.5)     # half rounds up


# Every banner is generated at 16:9 and then cropped. The safe zone is smaller
# than the share actually kept so content stays clear of the cut.
SOCIAL_BANNERS: dict[str, BannerFormat] = {
    "linkedin": BannerFormat("LinkedIn", 1584, 396, "16:9", 891, 35),
    "twitter": BannerFormat("X / Twitter", 1500, 500, "16:9", 844, 50),
    "facebook": BannerFormat("Facebook", 851, 315, "16:9", 479, 55),
    "youtube": BannerFormat("YouTube", 2560, 1440, "16:9", 1440, 100),
}

_ASPECT_RATIO_CSS = {
    "1:1": "1/1",
    "16:9": "16/9",
    "9:16": "9/16",
    "4:3": "4/3",
    "3:4": "3/4",
    "linkedin": "4/1",
    "twitter": "3/1",
    "facebook": "820/312",
    "youtube": "16/9",
}


def is_banner_format(aspect_ratio: Optional[str]) -> bool:
    return bool(aspect_ratio) and aspect_ratio in SOCIAL_BANNERS


def is_valid_aspect(aspect_ratio: Optional[str]) -> bool:
    return aspect_ratio in VALID_ASPECT_RATIOS or is_banner_format(aspect_ratio)


def parse_ratio(aspect_ratio: str) -> tuple[int, int]:
    """'16:9' -> (16, 9). Raises ValueError on anything else."""
    parts = aspect_ratio.split(":")
    if len(parts) != 2:
        raise ValueError(f"Not an aspect ratio: {aspect_ratio!r}")
    w, h = int(parts[0]), int(parts[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"Not an aspect ratio: {aspect_ratio!r}")
    return w, h


def generation_ratio_for(aspect_ratio: str) -> str:
    """Ratio the image model is asked for; banners map to their source ratio."""
    banner = SOCIAL_BANNERS.get(aspect_ratio)
    return banner.generation_ratio if banner else aspect_ratio


def display_ratio_for(aspect_ratio: str) -> str:
    banner = SOCIAL_BANNERS.get(aspect_ratio)
    if banner:
        return f"{banner.width}x{banner.height} ({aspect_ratio} banner)"
    return aspect_ratio


def aspect_suffix(aspect_ratio: str) -> str:
    """Filename/style suffix: '16:9' -> '16x9', 'linkedin' -> 'linkedin'."""
    return aspect_ratio.replace(":", "x")


def aspect_ratio_css(aspect_ratio: Optional[str]) -> str:
    if not aspect_ratio:
        return "1/1"
    return _ASPECT_RATIO_CSS.get(aspect_ratio, "1/1")


def thumbnail_size_for(aspect_ratio: str, max_size: int = THUMBNAIL_MAX_SIZE) -> tuple[int, int]:
    """Thumbnail dimensions for a wallpaper, longest side = max_size."""
    banner = SOCIAL_BANNERS.get(aspect_ratio)
    if banner:
        w, h = banner.width, banner.height
    else:
        w, h = parse_ratio(aspect_ratio)

    if w > h:
        return max_size, round(max_size * h / w)
    return round(max_size * w / h), max_size
