"""
imaging.py — Pillow helpers: data URLs, thumbnails, crops and download encoding.
"""
from __future__ import annotations

import base64
import binascii
import re
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import (
    MAX_IMAGE_BYTES,
    PHOTO_THUMBNAIL_QUALITY,
    THUMBNAIL_MAX_SIZE,
    THUMBNAIL_QUALITY,
)
from .exceptions import ImageTooLarge, InvalidImage

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}


# ── Data URLs ─────────────────────────────────────────────────────────────────

def data_url_size(data_url: str) -> int:
    """Approximate decoded size of a base64 data URL without decoding it."""
    _, _, payload = data_url.partition(",")
    return len(payload) * 3 // 4


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Split a `data:image/...;base64,` URL into (mime_type, raw bytes)."""
    match = _DATA_URL_RE.match(data_url or "")
    if not match:
        raise InvalidImage("Invalid image data format")
    mime_type, payload = match.groups()
    if data_url_size(data_url) > MAX_IMAGE_BYTES:
        raise ImageTooLarge("Image exceeds 10MB limit")
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImage("Image data is not valid base64") from exc


def to_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def extension_for(mime_type: Optional[str], filename: Optional[str] = None) -> str:
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return _EXTENSIONS.get((mime_type or "").lower(), "jpg")


# ── Validation ────────────────────────────────────────────────────────────────

def validate_image(image_bytes: bytes, max_bytes: int = MAX_IMAGE_BYTES) -> tuple[int, int]:
    """
    Check that the bytes decode as an image within the size limit.

    Returns:
        (width, height) of the image.

    Raises:
        InvalidImage / ImageTooLarge
    """
    if not image_bytes:
        raise InvalidImage("Empty upload")
    if len(image_bytes) > max_bytes:
        raise ImageTooLarge(f"Upload too large. Maximum size: {max_bytes // (1024 * 1024)}MB")
    try:
        img = Image.open(BytesIO(image_bytes))
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImage(f"Invalid image file: {exc}") from exc
    return img.size


def _open(image_bytes: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImage(f"Invalid image file: {exc}") from exc
    # Phone photos carry their rotation in EXIF
    return ImageOps.exif_transpose(img)


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white for JPEG output."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode(img: Image.Image, fmt: str, quality: int = 90) -> bytes:
    out = BytesIO()
    if fmt == "JPEG":
        _to_rgb(img).save(out, format="JPEG", quality=quality, optimize=True)
    else:
        img.save(out, format=fmt, optimize=True)
    return out.getvalue()


# ── Thumbnails ────────────────────────────────────────────────────────────────

def thumbnail_dimensions(width: int, height: int, max_size: int = THUMBNAIL_MAX_SIZE) -> tuple[int, int]:
    """Fit within max_size: landscape/square constrain width, portrait constrain height."""
    ratio = width / height
    if ratio >= 1:
        return max_size, max(1, round(max_size / ratio))
    return max(1, round(max_size * ratio)), max_size


def make_thumbnail(
    image_bytes: bytes,
    max_size: int = THUMBNAIL_MAX_SIZE,
    quality: int = THUMBNAIL_QUALITY,
) -> bytes:
    img = _open(image_bytes)
    size = thumbnail_dimensions(img.width, img.height, max_size)
    return _encode(img.resize(size, Image.LANCZOS), "JPEG", quality)


def make_square_thumbnail(
    image_bytes: bytes,
    size: int = THUMBNAIL_MAX_SIZE,
    quality: int = PHOTO_THUMBNAIL_QUALITY,
) -> bytes:
    """Center-crop to a square, then resize to size x size."""
    img = _open(image_bytes)
    side = min(img.width, img.height)
    left = (img.width - side) // 2
    top = (img.height - side) // 2
    square = img.crop((left, top, left + side, top + side))
    return _encode(square.resize((size, size), Image.LANCZOS), "JPEG", quality)


def resize_exact(image_bytes: bytes, width: int, height: int, quality: int) -> bytes:
    img = _open(image_bytes)
    return _encode(img.resize((width, height), Image.LANCZOS), "JPEG", quality)


def crop_to_ratio(image_bytes: bytes, ratio_w: int, ratio_h: int) -> bytes:
    """Center-crop to ratio_w:ratio_h at the largest size that fits (PNG)."""
    img = _open(image_bytes)
    target = ratio_w / ratio_h
    if abs(img.width / img.height - target) < 0.01:
        return image_bytes
    if img.width / img.height > target:
        w, h = round(img.height * target), img.height
    else:
        w, h = img.width, round(img.width / target)
    left = (img.width - w) // 2
    top = (img.height - h) // 2
    return _encode(img.crop((left, top, left + w, top + h)), "PNG")


def crop_to_aspect(image_bytes: bytes, width: int, height: int) -> bytes:
    """Center-crop to width:height and scale to exactly width x height (PNG)."""
    img = _open(image_bytes)
    fitted = ImageOps.fit(img, (width, height), method=Image.LANCZOS, centering=(0.5, 0.5))
    return _encode(fitted, "PNG")


# ── Downloads ─────────────────────────────────────────────────────────────────

def compress_image(image_bytes: bytes, fmt: str = "png", quality: float = 0.85) -> tuple[bytes, str]:
    """
    Re-encode for download.

    Args:
        fmt: "png" or "jpeg"
        quality: 0.0 - 1.0, JPEG only

    Returns:
        (encoded bytes, mime type)
    """
    img = _open(image_bytes)
    if fmt == "jpeg":
        q = max(1, min(100, round(quality * 100)))
        return _encode(img, "JPEG", q), "image/jpeg"
    if fmt == "png":
        return _encode(img, "PNG"), "image/png"
    raise ValueError(f"Unsupported download format: {fmt!r}")


def download_filename(filename: str, fmt: str) -> str:
    ext = "jpg" if fmt == "jpeg" else "png"
    return re.sub(r"\.(png|jpg|jpeg)$", f".{ext}", filename, flags=re.IGNORECASE)


def format_file_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"
