"""FastAPI application factory for AuthVault"""

from __future__ import annotations

import os
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from authvault import __version__
from authvault.auth.service import AuthService
from authvault.core.config import AuthSettings, load_settings
from authvault.stores.user_store import JsonUserStore, UserStore
from authvault.utils.logger import get_logger, setup_logger

from .auth_routes import router as auth_router

logger = get_logger(__name__)


def create_app(
    settings: Optional[AuthSettings] = None,
    store: Optional[UserStore] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the app; settings and store can be injected for tests"""
    settings = settings or load_settings()
    if configure_logging:
        setup_logger(
            log_level=settings.logging.level,
            log_format=settings.logging.format,
            file_path=settings.logging.file_path,
            max_bytes=settings.logging.max_bytes,
            backup_count=settings.logging.backup_count,
        )

    if store is None:
        store = JsonUserStore(settings.users_path, lock_timeout_seconds=settings.lock_timeout_seconds)
    store.initialize()

    app = FastAPI(
        title="AuthVault",
        description="Credential registration and login service",
        version=__version__,
    )

    # CORS is off unless origins are listed; never a wildcard
    cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type"],
        )

    app.state.settings = settings
    app.state.auth_service = AuthService(store, settings)
    app.include_router(auth_router)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    logger.info(
        "AuthVault initialized",
        version=__version__,
        users_path=str(settings.users_path),
        serialize_registrations=settings.serialize_registrations,
    )
    return app
