"""
auth/token_utils.py — Invite code generation and bearer token helpers.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..core.config import INVITE_CODE_ALPHABET, INVITE_CODE_LENGTH, INVITE_TTL_DAYS


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Random code from the unambiguous alphabet (no 0/O, 1/I)."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str) -> str:
    return code.strip().upper()


def invite_expiry(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(days=INVITE_TTL_DAYS)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
