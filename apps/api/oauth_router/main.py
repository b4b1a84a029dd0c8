"""Example host application mounting the OAuth router from environment settings.

Run with ``uvicorn oauth_router.main:create_app --factory``.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from oauth_router.core.config import Settings, get_settings
from oauth_router.errors import ConfigError
from oauth_router.routes.oauth import create_oauth_router
from oauth_router.schemas.config import RouterConfig


def _providers_from_settings(settings: Settings) -> dict[str, dict[str, Any]]:
    providers: dict[str, dict[str, Any]] = {}
    if settings.google_client_id:
        providers["google"] = {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "scopes": ["profile", "email"],
        }
    if settings.meta_client_id:
        providers["meta"] = {
            "client_id": settings.meta_client_id,
            "client_secret": settings.meta_client_secret,
            "scopes": ["public_profile", "email"],
        }
    if settings.apple_client_id:
        providers["apple"] = {
            "client_id": settings.apple_client_id,
            "team_id": settings.apple_team_id,
            "key_id": settings.apple_key_id,
            "private_key": settings.apple_private_key,
        }
    return providers


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    if not settings.base_url:
        raise ConfigError("OAUTH_ROUTER_BASE_URL is required")

    router_config = RouterConfig(
        base_url=settings.base_url,
        providers=_providers_from_settings(settings),
        settings=settings,
    )
    app = FastAPI(title="OAuth Router", version="1.0.0")
    app.state.oauth_router = create_oauth_router(router_config)
    app.mount(router_config.mount_path, app.state.oauth_router)
    return app
