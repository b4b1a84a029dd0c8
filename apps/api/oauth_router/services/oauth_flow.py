"""Redirect and callback handling shared by every provider."""

from __future__ import annotations

from collections.abc import Callable
import inspect
import logging
from secrets import compare_digest
from typing import Any

import httpx
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from oauth_router.adapters.providers.base import ProviderAdapter
from oauth_router.core.logging_safety import request_correlation_id, safe_log_identifier
from oauth_router.errors import AuthError, StateMismatchError, TokenExchangeError
from oauth_router.repositories.state_store import AuthState, InMemoryStateStore
from oauth_router.schemas.config import SuccessHook
from oauth_router.schemas.identity import Identity

logger = logging.getLogger(__name__)

SESSION_KEY = "oauth_router"
PROVIDER_DENIED = "PROVIDER_DENIED"


async def call_hook(hook: Callable[..., Any], *args: Any) -> Response:
    """Invoke a caller hook that may be sync or async."""
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def flow_session(request: Request) -> dict[str, Any]:
    return request.session.setdefault(SESSION_KEY, {})


def pop_failure(request: Request) -> AuthError:
    """Take the error recorded by the last failed callback out of the session."""
    session = flow_session(request)
    recorded = session.pop("error", None) or {}
    if not session:
        request.session.pop(SESSION_KEY, None)
    return AuthError.from_code(recorded.get("code"), recorded.get("provider"))


def _safe_redirect_target(value: str | None) -> str | None:
    # Same-origin absolute paths only.
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return None
    return value


class ProviderFlow:
    """Drives one provider adapter through start and callback."""

    def __init__(
        self,
        *,
        adapter: ProviderAdapter,
        store: InMemoryStateStore,
        base_url: str,
        http_timeout_seconds: float,
        on_success: SuccessHook | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.adapter = adapter
        self._store = store
        self._base_url = base_url
        self._http_timeout_seconds = http_timeout_seconds
        self._on_success = on_success
        self._http_transport = http_transport

    @property
    def redirect_uri(self) -> str:
        return f"{self._base_url}/{self.adapter.name}/callback"

    @property
    def failure_url(self) -> str:
        return f"{self._base_url}/failure"

    async def start(self, request: Request) -> Response:
        correlation_id = request_correlation_id(request)
        auth_state = self._store.issue(
            self.adapter.name,
            redirect_target=_safe_redirect_target(request.query_params.get("next")),
        )
        flow_session(request).setdefault("states", {})[self.adapter.name] = auth_state.token

        logger.info(
            "oauth.start correlation_id=%s provider=%s state=%s",
            safe_log_identifier(correlation_id, prefix="cid"),
            self.adapter.name,
            safe_log_identifier(auth_state.token, prefix="st"),
        )
        url = self.adapter.authorization_url(redirect_uri=self.redirect_uri, state=auth_state.token)
        return RedirectResponse(url, status_code=302)

    async def callback(self, request: Request) -> Response:
        correlation_id = request_correlation_id(request)
        safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
        try:
            auth_state, identity = await self._complete(request, safe_correlation_id)
        except AuthError as exc:
            flow_session(request)["error"] = {"code": exc.code, "provider": exc.provider or self.adapter.name}
            logger.warning(
                "oauth.rejected correlation_id=%s provider=%s code=%s",
                safe_correlation_id,
                self.adapter.name,
                exc.code,
            )
            return RedirectResponse(self.failure_url, status_code=302)

        logger.info(
            "oauth.accepted correlation_id=%s provider=%s principal_id=%s",
            safe_correlation_id,
            self.adapter.name,
            safe_log_identifier(identity.provider_user_id, prefix="pid"),
        )
        request.state.auth_state = auth_state
        if self._on_success is None:
            return JSONResponse(identity.model_dump(mode="json"))
        return await call_hook(self._on_success, request, identity)

    async def _complete(self, request: Request, safe_correlation_id: str) -> tuple[AuthState, Identity]:
        params = await self._callback_params(request)
        token = params.get("state")

        session = flow_session(request)
        pending_token = session.get("states", {}).pop(self.adapter.name, None)
        if not session.get("states"):
            session.pop("states", None)
        if not session:
            request.session.pop(SESSION_KEY, None)

        auth_state = self._store.consume(token, self.adapter.name)
        if auth_state is None:
            logger.warning(
                "oauth.state_rejected correlation_id=%s provider=%s state=%s reason=unknown_or_expired",
                safe_correlation_id,
                self.adapter.name,
                safe_log_identifier(token, prefix="st"),
            )
            raise StateMismatchError(provider=self.adapter.name)
        if self.adapter.binds_session and not (pending_token and compare_digest(pending_token, auth_state.token)):
            logger.warning(
                "oauth.state_rejected correlation_id=%s provider=%s state=%s reason=session_mismatch",
                safe_correlation_id,
                self.adapter.name,
                safe_log_identifier(token, prefix="st"),
            )
            raise StateMismatchError(provider=self.adapter.name)

        if params.get("error"):
            raise AuthError(PROVIDER_DENIED, provider=self.adapter.name)
        code = params.get("code")
        if not code:
            raise TokenExchangeError(provider=self.adapter.name)

        async with httpx.AsyncClient(
            timeout=self._http_timeout_seconds,
            transport=self._http_transport,
        ) as client:
            tokens = await self.adapter.exchange_code(client, code=code, redirect_uri=self.redirect_uri)
            identity = await self.adapter.fetch_identity(client, tokens=tokens, params=params)
        return auth_state, identity

    async def _callback_params(self, request: Request) -> dict[str, str]:
        if request.method == "POST":
            try:
                form = await request.form()
            except (HTTPException, MultiPartException) as exc:
                logger.warning(
                    "oauth.callback_body_rejected provider=%s reason=%s",
                    self.adapter.name,
                    type(exc).__name__,
                )
                raise StateMismatchError(provider=self.adapter.name) from exc
            return {key: value for key, value in form.items() if isinstance(value, str)}
        return dict(request.query_params)


__all__ = ["PROVIDER_DENIED", "SESSION_KEY", "ProviderFlow", "call_hook", "flow_session", "pop_failure"]
