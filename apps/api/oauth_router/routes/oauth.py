"""Assembly of the mountable OAuth router."""

from __future__ import annotations

from collections.abc import Mapping
import logging
import secrets
from typing import Any
from urllib.parse import urlsplit

from fastapi import FastAPI
from pydantic import ValidationError
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from oauth_router.adapters.providers import PROVIDER_REGISTRY, ProviderAdapter
from oauth_router.core.config import Settings, get_settings
from oauth_router.core.logging_safety import request_correlation_id, safe_log_identifier
from oauth_router.errors import ConfigError
from oauth_router.repositories.state_store import InMemoryStateStore
from oauth_router.schemas.config import RouterConfig
from oauth_router.schemas.error import FailureResponse
from oauth_router.services.oauth_flow import ProviderFlow, call_hook, pop_failure

logger = logging.getLogger(__name__)


def _config_error(scope: str, exc: ValidationError) -> ConfigError:
    # Field locations only; input values may hold secrets.
    fields = sorted({".".join(str(part) for part in error["loc"]) or scope for error in exc.errors()})
    return ConfigError(f"Invalid {scope} configuration: {', '.join(fields)}")


def _load_router_config(config: RouterConfig | Mapping[str, Any]) -> RouterConfig:
    if isinstance(config, RouterConfig):
        return config
    try:
        return RouterConfig.model_validate(config)
    except ValidationError as exc:
        raise _config_error("router", exc) from exc


def _check_base_url(base_url: str) -> None:
    parts = urlsplit(base_url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ConfigError("base_url must be an absolute http(s) URL")
    if parts.query or parts.fragment:
        raise ConfigError("base_url must not carry a query string or fragment")


def resolve_enabled_providers(config: RouterConfig) -> list[str]:
    """Enabled set: the filter when non-empty, else every configured provider, limited to configured ones."""
    unknown = sorted((set(config.providers) | set(config.filter)) - set(PROVIDER_REGISTRY))
    if unknown:
        raise ConfigError(f"Unsupported providers: {', '.join(unknown)}")

    requested = config.filter or list(config.providers)
    enabled: list[str] = []
    for name in dict.fromkeys(requested):
        if config.providers.get(name) is None:
            logger.warning("oauth.provider_skipped provider=%s reason=not_configured", name)
            continue
        enabled.append(name)
    return enabled


def build_adapters(config: RouterConfig) -> list[ProviderAdapter]:
    adapters: list[ProviderAdapter] = []
    for name in resolve_enabled_providers(config):
        config_type, adapter_type = PROVIDER_REGISTRY[name]
        raw = config.providers[name]
        try:
            provider_config = raw if isinstance(raw, config_type) else config_type.model_validate(raw)
        except ValidationError as exc:
            raise _config_error(name, exc) from exc
        adapters.append(adapter_type(provider_config))
    return adapters


def _resolve_session_secret(config: RouterConfig, settings: Settings) -> str:
    secret = config.session_secret or settings.session_secret
    if secret:
        return secret
    if settings.is_production:
        raise ConfigError("A session secret is required (session_secret or OAUTH_ROUTER_SESSION_SECRET)")

    logger.warning("oauth.session_secret_generated environment=%s", settings.environment)
    return secrets.token_urlsafe(32)


def create_oauth_router(config: RouterConfig | Mapping[str, Any]) -> FastAPI:
    """Build a sub-application exposing login, callback and failure endpoints.

    Mount it at the path of ``base_url``::

        app.mount("/auth", create_oauth_router({"baseUrl": "https://example.com/auth", ...}))

    Raises ``ConfigError`` before any route exists when the configuration is
    invalid, so a router is either complete or not built at all.
    """
    router_config = _load_router_config(config)
    settings = router_config.settings or get_settings()
    _check_base_url(router_config.base_url)
    adapters = build_adapters(router_config)
    session_secret = _resolve_session_secret(router_config, settings)

    store = InMemoryStateStore(
        ttl_seconds=settings.state_ttl_seconds,
        sweep_interval_seconds=settings.state_sweep_interval_seconds,
    )
    router = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    router.state.state_store = store
    router.state.enabled_providers = tuple(adapter.name for adapter in adapters)

    for adapter in adapters:
        flow = ProviderFlow(
            adapter=adapter,
            store=store,
            base_url=router_config.base_url,
            http_timeout_seconds=settings.http_timeout_seconds,
            on_success=router_config.on_success,
            http_transport=router_config.http_transport,
        )
        router.add_route(f"/{adapter.name}", flow.start, methods=["GET"], name=f"{adapter.name}_start")
        router.add_route(
            f"/{adapter.name}/callback",
            flow.callback,
            methods=[adapter.callback_method],
            name=f"{adapter.name}_callback",
        )

    on_failure = router_config.on_failure

    async def failure(request: Request) -> Response:
        error = pop_failure(request)
        logger.info(
            "oauth.failure correlation_id=%s provider=%s code=%s",
            safe_log_identifier(request_correlation_id(request), prefix="cid"),
            error.provider or "-",
            error.code,
        )
        if on_failure is not None:
            return await call_hook(on_failure, request, error)
        return JSONResponse(status_code=401, content=FailureResponse().model_dump())

    router.add_route("/failure", failure, methods=["GET"], name="failure")

    router.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age_seconds,
        path=router_config.mount_path,
        same_site="lax",
        https_only=router_config.is_https,
    )

    logger.info(
        "oauth.router_built base_url=%s providers=%s",
        router_config.base_url,
        ",".join(router.state.enabled_providers) or "-",
    )
    return router


__all__ = ["build_adapters", "create_oauth_router", "resolve_enabled_providers"]
