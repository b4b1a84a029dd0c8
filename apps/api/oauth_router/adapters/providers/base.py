"""Provider adapter interface and the shared authorization-code exchange."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
from typing import Any, ClassVar, Generic, TypeVar
from urllib.parse import urlencode

import httpx

from oauth_router.errors import ProfileFetchError, TokenExchangeError
from oauth_router.schemas.config import ProviderConfig
from oauth_router.schemas.identity import Identity

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=ProviderConfig)


@dataclass(slots=True)
class TokenSet:
    access_token: str
    token_type: str | None = None
    expires_in: int | None = None
    id_token: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class ProviderAdapter(ABC, Generic[ConfigT]):
    """One provider's side of the authorization-code grant.

    Subclasses supply endpoints, the client secret and the profile mapping;
    the request/response handling of the token endpoint is shared.
    """

    name: ClassVar[str]
    authorization_endpoint: ClassVar[str]
    token_endpoint: ClassVar[str]
    callback_method: ClassVar[str] = "GET"
    # Whether the callback request is expected to carry the session cookie set on start.
    binds_session: ClassVar[bool] = True
    scope_separator: ClassVar[str] = " "

    def __init__(self, config: ConfigT) -> None:
        self.config = config

    def authorization_url(self, *, redirect_uri: str, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri,
            "scope": self.scope_separator.join(self.config.scopes),
            "state": state,
        }
        params.update(self.extra_authorization_params())
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    def extra_authorization_params(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def client_secret(self) -> str:
        """Return the secret sent with the token request."""

    async def exchange_code(self, client: httpx.AsyncClient, *, code: str, redirect_uri: str) -> TokenSet:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.client_secret(),
        }
        return await self._request_tokens(client, data)

    @abstractmethod
    async def fetch_identity(
        self,
        client: httpx.AsyncClient,
        *,
        tokens: TokenSet,
        params: Mapping[str, str],
    ) -> Identity:
        """Resolve the authenticated user from the exchanged tokens."""

    async def _request_tokens(self, client: httpx.AsyncClient, data: dict[str, str]) -> TokenSet:
        try:
            response = await client.post(self.token_endpoint, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            logger.warning(
                "oauth.token_exchange_failed provider=%s reason=%s",
                self.name,
                type(exc).__name__,
            )
            raise TokenExchangeError(provider=self.name) from exc

        if not response.is_success:
            logger.warning(
                "oauth.token_exchange_failed provider=%s reason=http_status status=%s",
                self.name,
                response.status_code,
            )
            raise TokenExchangeError(provider=self.name)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("oauth.token_exchange_failed provider=%s reason=malformed_body", self.name)
            raise TokenExchangeError(provider=self.name) from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            logger.warning("oauth.token_exchange_failed provider=%s reason=missing_access_token", self.name)
            raise TokenExchangeError(provider=self.name)

        expires_in = payload.get("expires_in")
        return TokenSet(
            access_token=access_token,
            token_type=payload.get("token_type"),
            expires_in=expires_in if isinstance(expires_in, int) else None,
            id_token=payload.get("id_token"),
            raw=payload,
        )

    async def _get_profile(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        access_token: str,
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("oauth.profile_fetch_failed provider=%s reason=%s", self.name, type(exc).__name__)
            raise ProfileFetchError(provider=self.name) from exc

        if not response.is_success:
            logger.warning(
                "oauth.profile_fetch_failed provider=%s reason=http_status status=%s",
                self.name,
                response.status_code,
            )
            raise ProfileFetchError(provider=self.name)

        try:
            profile = response.json()
        except ValueError as exc:
            logger.warning("oauth.profile_fetch_failed provider=%s reason=malformed_body", self.name)
            raise ProfileFetchError(provider=self.name) from exc
        if not isinstance(profile, dict):
            raise ProfileFetchError(provider=self.name)
        return profile

    def _build_identity(
        self,
        *,
        user_id: Any,
        display_name: Any = None,
        emails: list[Any] | None = None,
        raw_profile: dict[str, Any],
    ) -> Identity:
        provider_user_id = str(user_id or "").strip()
        if not provider_user_id:
            logger.warning("oauth.profile_fetch_failed provider=%s reason=missing_user_id", self.name)
            raise ProfileFetchError(provider=self.name)

        name = str(display_name).strip() if display_name else None
        return Identity(
            provider=self.name,
            provider_user_id=provider_user_id,
            display_name=name or None,
            emails=[str(email) for email in emails or [] if email],
            raw_profile=raw_profile,
        )


__all__ = ["ProviderAdapter", "TokenSet"]
