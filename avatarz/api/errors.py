"""
api/errors.py — Standard error response shapes and helpers.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse

from ..core.exceptions import AvatarzError

# Codes for HTTPExceptions raised by dependencies / FastAPI itself
_STATUS_CODES = {
    400: "INVALID_INPUT",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "INVALID_INPUT",
    422: "INVALID_INPUT",
    429: "QUOTA_EXCEEDED",
}


def error_response(
    code: str,
    message: str,
    http_status: int = 400,
    details: Optional[list] = None,
    extra: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        },
        "status": "error",
    }
    if details:
        body["error"]["details"] = details
    if extra:
        body.update(extra)

    return JSONResponse(status_code=http_status, content=body)


def from_exception(exc: AvatarzError) -> JSONResponse:
    return error_response(exc.code, exc.message, exc.http_status, exc.details, exc.extra)


def code_for_status(http_status: int) -> str:
    return _STATUS_CODES.get(http_status, "INTERNAL_ERROR" if http_status >= 500 else "INVALID_INPUT")


# ── Named constructors for common error codes ─────────────────────────────────

def invalid_input(message: str, details: Optional[list] = None, http_status: int = 422) -> JSONResponse:
    return error_response("INVALID_INPUT", message, http_status, details)


def internal_error() -> JSONResponse:
    return error_response("INTERNAL_ERROR", "An unexpected error occurred.", 500)
