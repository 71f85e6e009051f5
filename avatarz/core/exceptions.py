"""
exceptions.py — Domain errors raised by core code.

Each carries the error code and HTTP status the API layer renders it with.
"""
from __future__ import annotations

from typing import Any, Optional


class AvatarzError(Exception):
    code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[list] = None,
        extra: Optional[dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra or {}
        if http_status is not None:
            self.http_status = http_status


class InvalidRequest(AvatarzError):
    code = "INVALID_INPUT"
    http_status = 400


class InvalidImage(InvalidRequest):
    """Upload could not be decoded as an image."""


class ImageTooLarge(InvalidRequest):
    http_status = 413


class NotFound(AvatarzError):
    code = "NOT_FOUND"
    http_status = 404


class Forbidden(AvatarzError):
    code = "FORBIDDEN"
    http_status = 403


class Conflict(AvatarzError):
    code = "CONFLICT"
    http_status = 409


class QuotaExceeded(AvatarzError):
    code = "QUOTA_EXCEEDED"
    http_status = 429


class InviteNotFound(AvatarzError):
    code = "INVITE_NOT_FOUND"
    http_status = 404


class InviteExpired(AvatarzError):
    code = "INVITE_EXPIRED"
    http_status = 410


class InviteExhausted(AvatarzError):
    code = "INVITE_EXHAUSTED"
    http_status = 410


class EmailAlreadyRegistered(AvatarzError):
    code = "EMAIL_ALREADY_REGISTERED"
    http_status = 400


class UpstreamError(AvatarzError):
    """Hosted backend call failed."""
    code = "UPSTREAM_ERROR"
    http_status = 502


class ImageGenerationError(AvatarzError):
    code = "GENERATION_FAILED"
    http_status = 500


class ContentRestrictedError(ImageGenerationError):
    code = "CONTENT_RESTRICTED"
    http_status = 422


class ImageGenerationTimeout(ImageGenerationError):
    code = "TIMEOUT"
    http_status = 504
