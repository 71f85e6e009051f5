"""
prompt_builder.py — Assembles the text prompt sent alongside the source image.

Covers fresh avatars, edits of an existing avatar, and canvas extensions
(wallpapers and social banners).
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from .formats import SOCIAL_BANNERS, BannerFormat, display_ratio_for
from .models import GenerateAvatarRequest, ImagePrompt, Style

logger = logging.getLogger(__name__)

# ── Static option tables ──────────────────────────────────────────────────────

AGE_PROMPTS = {
    "normal": "",
    "younger": "Make the person appear younger with youthful features.",
    "older": "Make the person appear older with mature features.",
}

BACKGROUND_PROMPTS = {
    "remove": (
        "Replace the background with something neutral or style-appropriate "
        "that complements the overall aesthetic."
    ),
    "keep": "Keep the original background scene but transform it to match the art style.",
}

CROP_PROMPTS = {
    "floating-head": (
        "Show only the disembodied floating head with no neck, shoulders, or body visible. "
        "The head should appear to float against the background. Apply stylistic effects "
        "appropriate to the chosen art style (glow, shadow, fade, or clean cut depending on style)."
    ),
    "portrait": "Show only the head and shoulders, tightly cropped portrait composition.",
    "half": "Show from the waist up, medium shot composition.",
    "full": "Show the entire body in frame, full length portrait.",
}

NAME_PLACEMENT_PROMPTS = {
    "graffiti": "written in bold graffiti style on a wall behind them, spray paint aesthetic with drips and highlights",
    "necklace": "displayed on a thick gold chain necklace around their neck, clearly readable gold lettering",
    "headband": "embroidered on a stylish headband they are wearing, clearly visible text",
    "jersey": "printed on the front of a sports jersey they are wearing, athletic style lettering",
    "floating": "as glowing holographic text floating near them, futuristic neon effect",
    "badge": "on a professional name badge or lanyard they are wearing, clearly readable",
    "tattoo": "as a stylish tattoo visible on their forearm, artistic lettering style",
    "banner": "on an elegant decorative banner or ribbon below them, ornate vintage style",
}

# Options advertised to the client (GET generate-avatar)
NAME_PLACEMENTS = [
    {"id": "graffiti", "label": "Graffiti", "description": "Name as street art behind you"},
    {"id": "necklace", "label": "Gold Chain", "description": "Name on a gold chain necklace"},
    {"id": "headband", "label": "Headband", "description": "Name on a headband"},
    {"id": "jersey", "label": "Jersey", "description": "Name on a sports jersey"},
    {"id": "floating", "label": "Hologram", "description": "Name as floating neon text"},
    {"id": "badge", "label": "Name Badge", "description": "Name on a lanyard badge"},
    {"id": "tattoo", "label": "Tattoo", "description": "Name as a forearm tattoo"},
    {"id": "banner", "label": "Banner", "description": "Name on a ribbon banner"},
]
CUSTOM_PLACEMENT = {"id": "custom", "label": "Custom", "description": "Describe your own placement"}

CROP_TYPES = [
    {"id": "floating-head", "label": "Floating Head", "description": "Just the head"},
    {"id": "portrait", "label": "Portrait", "description": "Head & shoulders"},
    {"id": "half", "label": "Half Body", "description": "Waist up"},
    {"id": "full", "label": "Full Body", "description": "Entire body"},
]

SYSTEM_SUFFIX = "Keep the original face recognizable and maintain their identity. High quality output."

EDIT_SUFFIX = (
    "Apply only the requested change. Keep the existing composition, art style, colours "
    "and the person's identity unchanged. High quality output."
)

WALLPAPER_INSTRUCTIONS = """

CRITICAL: This is an existing AI-generated avatar image. Extend the canvas to fill the new {display_ratio} format while:
1. Keeping the original avatar content intact
2. Creating a natural, seamless extension of the background/environment
3. Maintaining the same art style and color palette
4. The extended areas should complement the original image perfectly
5. Output a high-quality image that looks like it was originally created at this aspect ratio"""

SAFE_ZONE_INSTRUCTIONS = """

CRITICAL COMPOSITION CONSTRAINT:
This image will be cropped to a {width}×{height} banner.
The TOP {crop}% and BOTTOM {crop}% of the image will be REMOVED.
Keep ALL important content (faces, text, key elements) strictly within the CENTER {safe}% vertical band.
The top and bottom zones should contain ONLY background elements (sky, ground, gradients) that can be safely cropped.
Do NOT place any faces, text, or focal points near the top or bottom edges.
IMPORTANT: Create ONE continuous, unified composition. Do NOT create distinct horizontal bands or sharp divisions between zones. The background should flow naturally as a single cohesive scene."""

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w-]+)\s*\}\}")


# ── Style prompt ──────────────────────────────────────────────────────────────

def fill_style_template(template: str, input_values: dict[str, str]) -> str:
    """Substitute {{field}} placeholders; unknown fields become empty."""
    def _sub(match: re.Match) -> str:
        return (input_values.get(match.group(1)) or "").strip()
    return re.sub(r"\s{2,}", " ", _PLACEHOLDER_RE.sub(_sub, template)).strip()


def style_prompt_for(req: GenerateAvatarRequest, style: Optional[Style]) -> str:
    if req.is_custom or style is None:
        return (req.custom_style or "").strip()
    return fill_style_template(style.prompt, req.input_values)


# ── Avatar prompt ─────────────────────────────────────────────────────────────

def _name_prompt(name: Optional[str], placement: Optional[str], custom_placement: Optional[str]) -> Optional[str]:
    if not name or not placement:
        return None
    if placement == "custom" and custom_placement:
        placement_text = custom_placement.strip()
    else:
        placement_text = NAME_PLACEMENT_PROMPTS.get(placement, "")
    return f'Include the name "{name}" {placement_text}.'


def build_avatar_prompt(req: GenerateAvatarRequest, style: Optional[Style] = None) -> ImagePrompt:
    """
    Build the generation prompt.

    Order: style, age, background, customisation, crop, name, suffix.
    The custom category only contributes its own prompt plus crop and name.
    """
    parts: list[str] = []

    style_prompt = style_prompt_for(req, style)
    if style_prompt:
        parts.append(style_prompt)

    if not req.is_custom:
        age_prompt = AGE_PROMPTS.get(req.age_modification or "normal", "")
        if age_prompt:
            parts.append(age_prompt)

        # keep_background omitted means the client did not offer the choice
        bg_key = "keep" if req.keep_background else "remove"
        parts.append(BACKGROUND_PROMPTS[bg_key])

        if req.customisation_text and req.customisation_text.strip():
            parts.append(req.customisation_text.strip())

    crop_prompt = CROP_PROMPTS.get(req.crop_type, "")
    if crop_prompt:
        parts.append(crop_prompt)

    name_prompt = _name_prompt(req.name, req.name_placement, req.custom_placement)
    if name_prompt:
        parts.append(name_prompt)

    parts.append(SYSTEM_SUFFIX)

    return ImagePrompt(
        text=" ".join(parts).strip(),
        parts=parts,
        meta={"style": style.id if style else req.style, "crop_type": req.crop_type},
    )


def build_edit_prompt(edit_prompt: str) -> ImagePrompt:
    parts = [edit_prompt.strip(), EDIT_SUFFIX]
    return ImagePrompt(text=" ".join(parts), parts=parts, meta={"mode": "edit"})


# ── Extension prompt ──────────────────────────────────────────────────────────

def safe_zone_instructions(banner: BannerFormat) -> str:
    if banner.safe_zone_percent >= 100:
        return ""
    return SAFE_ZONE_INSTRUCTIONS.format(
        width=banner.width,
        height=banner.height,
        crop=banner.crop_percent,
        safe=banner.safe_zone_percent,
    )


def build_extension_prompt(prompt: str, aspect_ratio: str) -> ImagePrompt:
    """Social banners get the safe-zone constraint, wallpapers the canvas-extension rules."""
    banner = SOCIAL_BANNERS.get(aspect_ratio)
    if banner:
        text = f"{prompt}{safe_zone_instructions(banner)}"
    else:
        text = f"{prompt}{WALLPAPER_INSTRUCTIONS.format(display_ratio=display_ratio_for(aspect_ratio))}"
    logger.debug("Extension prompt for %s: %s", aspect_ratio, text)
    return ImagePrompt(text=text, parts=[text], meta={"aspect_ratio": aspect_ratio, "banner": bool(banner)})
