"""
api/dependencies.py — FastAPI dependency injection: current user, backend clients, admin guard.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ..auth.models import CurrentUser
from ..auth.token_utils import bearer_token
from ..core.supabase_client import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)


def get_service_client() -> SupabaseClient:
    """Service-role client; bypasses row-level security."""
    return SupabaseClient.service()


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    admin_db: SupabaseClient = Depends(get_service_client),
) -> CurrentUser:
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization header")
    try:
        auth_user = admin_db.get_user(token)
    except SupabaseError as exc:
        logger.error("Token verification failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not verify token") from exc
    if not auth_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    profile = admin_db.get_profile(auth_user["id"])
    return CurrentUser.from_row(auth_user, profile, token)


def get_user_client(user: CurrentUser = Depends(get_current_user)) -> SupabaseClient:
    """Client acting as the caller, so row-level security applies."""
    return SupabaseClient.for_user(user.access_token)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
