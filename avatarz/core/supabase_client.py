"""
supabase_client.py — Typed hosted-backend client (PostgREST, Storage, Auth) with retry logic.

Uses requests against the REST endpoints. Table, bucket and RPC names live in config.py.
"""
from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Optional
from urllib.parse import quote

import requests

from .config import (
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
    SIGNED_URL_TTL,
    SUPABASE_ANON_KEY,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_TIMEOUT,
    SUPABASE_URL,
    TABLE_ALLOWLIST,
    TABLE_GENERATIONS,
    TABLE_INVITE_CODES,
    TABLE_PHOTOS,
    TABLE_PROFILES,
    TABLE_STYLE_CATEGORIES,
    TABLE_STYLES,
)
from .exceptions import UpstreamError

logger = logging.getLogger(__name__)

# PostgREST error codes
PG_UNIQUE_VIOLATION = "23505"

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
_IDEMPOTENT_METHODS = {"GET", "HEAD", "DELETE"}


class SupabaseError(UpstreamError):
    """Non-2xx response from the hosted backend."""

    def __init__(self, message: str, status_code: Optional[int] = None, pg_code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.pg_code = pg_code


def _error_from(resp: requests.Response) -> SupabaseError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or resp.text[:500]
        or f"HTTP {resp.status_code}"
    )
    return SupabaseError(str(message), status_code=resp.status_code, pg_code=body.get("code"))


# ── Retry decorator ───────────────────────────────────────────────────────────

def _should_retry(exc: Exception, idempotent: bool) -> bool:
    # A read timeout or 5xx on a write may arrive after the write committed.
    if isinstance(exc, requests.ConnectionError):
        return True
    if isinstance(exc, requests.Timeout):
        return idempotent
    status = getattr(exc, "status_code", None)
    if status == 429:
        return True
    return idempotent and status in _RETRYABLE_STATUS


def _retryable(func):
    """
    Retry with exponential backoff + jitter.

    Idempotent calls (GET, DELETE, or read RPCs flagged by the caller) retry on
    429, 5xx, timeouts and connection errors. Writes retry only on connection
    errors and 429.
    """
    @functools.wraps(func)
    def wrapper(self, method, path, *, idempotent: Optional[bool] = None, **kwargs):
        if idempotent is None:
            idempotent = method in _IDEMPOTENT_METHODS
        last_exc = None
        for attempt in range(RETRY_ATTEMPTS):
            try:
                return func(self, method, path, **kwargs)
            except (SupabaseError, requests.ConnectionError, requests.Timeout) as exc:
                if not _should_retry(exc, idempotent):
                    if isinstance(exc, SupabaseError):
                        raise
                    raise SupabaseError(f"Supabase call failed: {exc}") from exc
                last_exc = exc
                status = getattr(exc, "status_code", None)
                delay = min(RETRY_BASE_DELAY * (2 ** attempt), RETRY_MAX_DELAY)
                jitter = delay * 0.25 * (2 * random.random() - 1)
                wait = delay + jitter
                logger.warning(
                    "Supabase error (%s %s, status=%s) attempt %d/%d; sleeping %.1fs: %s",
                    method, path, status, attempt + 1, RETRY_ATTEMPTS, wait, exc,
                )
                time.sleep(wait)
        if isinstance(last_exc, SupabaseError):
            raise last_exc
        raise SupabaseError(f"Supabase call failed after all retries: {last_exc}")
    return wrapper


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _filter_params(filters: Optional[dict[str, Any]]) -> dict[str, str]:
    return {col: _filter_value(val) for col, val in (filters or {}).items()}


# ── Client wrapper ────────────────────────────────────────────────────────────

class SupabaseClient:
    """
    Typed client for the hosted backend.

    A user-scoped client sends the caller's access token, so row-level security
    applies. The service client sends the service-role key and bypasses it.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self._url = (url or SUPABASE_URL).rstrip("/")
        self._api_key = api_key or SUPABASE_SERVICE_ROLE_KEY
        self._token = access_token or self._api_key
        self._session = session or requests.Session()

    @classmethod
    def for_user(cls, access_token: str) -> "SupabaseClient":
        return cls(api_key=SUPABASE_ANON_KEY, access_token=access_token)

    @classmethod
    def service(cls) -> "SupabaseClient":
        return cls(api_key=SUPABASE_SERVICE_ROLE_KEY)

    def _headers(self, extra: Optional[dict[str, str]] = None, token: Optional[str] = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {token or self._token}",
        }
        if extra:
            headers.update(extra)
        return headers

    @_retryable
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> requests.Response:
        resp = self._session.request(
            method,
            f"{self._url}{path}",
            params=params,
            json=json,
            data=data,
            headers=self._headers(headers, token),
            timeout=SUPABASE_TIMEOUT,
        )
        if resp.status_code >= 400:
            raise _error_from(resp)
        return resp

    # ── Data (PostgREST) ──────────────────────────────────────────────────────

    def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[dict]:
        """order is PostgREST syntax, e.g. 'created_at.desc'."""
        params: dict[str, Any] = {"select": columns, **_filter_params(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        return self._request("GET", f"/rest/v1/{table}", params=params).json()

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
    ) -> Optional[dict]:
        rows = self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: dict) -> dict:
        rows = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers={"Prefer": "return=representation"},
        ).json()
        return rows[0] if rows else {}

    def update(self, table: str, values: dict, filters: dict[str, Any]) -> list[dict]:
        return self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=_filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        ).json()

    def delete(self, table: str, filters: dict[str, Any]) -> None:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        self._request("DELETE", f"/rest/v1/{table}", params=_filter_params(filters))

    def upsert(self, table: str, row: dict, on_conflict: str, ignore_duplicates: bool = False) -> None:
        resolution = "ignore-duplicates" if ignore_duplicates else "merge-duplicates"
        self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=row,
            headers={"Prefer": f"resolution={resolution},return=minimal"},
        )

    def rpc(self, name: str, params: Optional[dict] = None, *, idempotent: bool = False) -> Any:
        """Pass idempotent=True for read-only functions so timeouts and 5xx are retried."""
        resp = self._request("POST", f"/rest/v1/rpc/{name}", json=params or {}, idempotent=idempotent)
        if not resp.content:
            return None
        return resp.json()

    # ── Storage ───────────────────────────────────────────────────────────────

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> str:
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            data=data,
            headers={
                "Content-Type": content_type,
                "cache-control": f"max-age={cache_control}",
                "x-upsert": "true" if upsert else "false",
            },
        )
        return path

    def download(self, bucket: str, path: str) -> bytes:
        return self._request("GET", f"/storage/v1/object/{bucket}/{quote(path)}").content

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        self._request("DELETE", f"/storage/v1/object/{bucket}", json={"prefixes": paths})

    def create_signed_url(self, bucket: str, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        body = self._request(
            "POST",
            f"/storage/v1/object/sign/{bucket}/{quote(path)}",
            json={"expiresIn": expires_in},
            idempotent=True,
        ).json()
        signed = body.get("signedURL") or body.get("signedUrl")
        if not signed:
            raise SupabaseError(f"No signed URL returned for {bucket}/{path}")
        return f"{self._url}/storage/v1{signed}"

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._url}/storage/v1/object/public/{bucket}/{path}"

    # ── Auth ──────────────────────────────────────────────────────────────────

    def get_user(self, access_token: str) -> Optional[dict]:
        """Resolve an access token to the identity provider's user, or None."""
        try:
            resp = self._request(
                "GET",
                "/auth/v1/user",
                headers={"apikey": SUPABASE_ANON_KEY or self._api_key},
                token=access_token,
            )
        except SupabaseError as exc:
            if exc.status_code in (401, 403):
                return None
            raise
        user = resp.json()
        return user if user.get("id") else None

    def invite_user_by_email(
        self,
        email: str,
        data: Optional[dict] = None,
        redirect_to: Optional[str] = None,
    ) -> dict:
        params = {"redirect_to": redirect_to} if redirect_to else None
        return self._request(
            "POST",
            "/auth/v1/invite",
            params=params,
            json={"email": email, "data": data or {}},
        ).json()

    def email_registered(self, email: str, per_page: int = 1000) -> bool:
        target = email.lower()
        page = 1
        while True:
            body = self._request(
                "GET",
                "/auth/v1/admin/users",
                params={"page": page, "per_page": per_page},
            ).json()
            users = body.get("users", []) if isinstance(body, dict) else body
            if any((u.get("email") or "").lower() == target for u in users):
                return True
            if len(users) < per_page:
                return False
            page += 1

    # ── Profiles ──────────────────────────────────────────────────────────────

    def get_profile(self, user_id: str) -> Optional[dict]:
        return self.select_one(TABLE_PROFILES, {"id": user_id})

    # ── Quotas ────────────────────────────────────────────────────────────────

    def get_user_quota(self) -> dict:
        return self.rpc("get_user_quota", idempotent=True)

    def get_invite_quota(self) -> dict:
        return self.rpc("get_invite_quota", idempotent=True)

    # ── Styles ────────────────────────────────────────────────────────────────

    def get_style(self, style_id: str) -> Optional[dict]:
        return self.select_one(TABLE_STYLES, {"id": style_id, "is_active": True})

    def list_styles(self, category_id: str) -> list[dict]:
        return self.select(
            TABLE_STYLES,
            {"category_id": category_id, "is_active": True},
            order="sort_order.asc",
        )

    def list_categories(self) -> list[dict]:
        return self.select(TABLE_STYLE_CATEGORIES, {"is_active": True}, order="sort_order.asc")

    # ── Generations ───────────────────────────────────────────────────────────

    def get_generation(self, generation_id: str, user_id: Optional[str] = None) -> Optional[dict]:
        filters: dict[str, Any] = {"id": generation_id}
        if user_id:
            filters["user_id"] = user_id
        return self.select_one(TABLE_GENERATIONS, filters)

    def insert_generation(self, row: dict) -> dict:
        return self.insert(TABLE_GENERATIONS, row)

    # ── Photos ────────────────────────────────────────────────────────────────

    def get_photo(self, photo_id: str, user_id: Optional[str] = None) -> Optional[dict]:
        filters: dict[str, Any] = {"id": photo_id}
        if user_id:
            filters["user_id"] = user_id
        return self.select_one(TABLE_PHOTOS, filters)

    # ── Invites / allowlist ───────────────────────────────────────────────────

    def find_invite_code(self, code: str) -> Optional[dict]:
        return self.select_one(TABLE_INVITE_CODES, {"code": code})

    def claim_invite_code(self, code: str, email: str) -> dict:
        return self.rpc("claim_invite_code", {"invite_code": code, "user_email": email})

    def upsert_allowlist(self, email: str, tier_id: str) -> None:
        self.upsert(TABLE_ALLOWLIST, {"email": email, "tier_id": tier_id}, on_conflict="email")
