"""
api/app.py — FastAPI application factory.
"""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.config import APP_VERSION
from ..core.exceptions import AvatarzError
from .errors import code_for_status, error_response, from_exception, internal_error, invalid_input
from .routes_account import router as account_router
from .routes_admin import router as admin_router
from .routes_gallery import router as gallery_router
from .routes_generate import router as generate_router
from .routes_invites import router as invites_router
from .routes_photos import router as photos_router

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Avatarz API",
        version=APP_VERSION,
    )

    # ── CORS ──────────────────────────────────────────────────────────────────
    origins = [
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:5173",
        ).split(",")
        if o.strip()
    ]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(generate_router)
    app.include_router(invites_router)
    app.include_router(photos_router)
    app.include_router(gallery_router)
    app.include_router(account_router)
    app.include_router(admin_router)

    # ── Health ────────────────────────────────────────────────────────────────
    @app.get("/health")
    async def health():
        return {"status": "ok", "version": APP_VERSION}

    # ── Exception handlers ────────────────────────────────────────────────────
    @app.exception_handler(AvatarzError)
    async def avatarz_error_handler(request: Request, exc: AvatarzError):
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return from_exception(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(code_for_status(exc.status_code), str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"path": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return invalid_input("Invalid request body", details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return internal_error()

    return app
