"""Google OAuth 2.0 adapter."""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from oauth_router.adapters.providers.base import ProviderAdapter, TokenSet
from oauth_router.schemas.config import GoogleConfig
from oauth_router.schemas.identity import Identity


class GoogleAdapter(ProviderAdapter[GoogleConfig]):
    name = "google"
    authorization_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    userinfo_endpoint = "https://www.googleapis.com/oauth2/v3/userinfo"

    def client_secret(self) -> str:
        return self.config.client_secret

    async def fetch_identity(
        self,
        client: httpx.AsyncClient,
        *,
        tokens: TokenSet,
        params: Mapping[str, str],
    ) -> Identity:
        profile = await self._get_profile(client, self.userinfo_endpoint, access_token=tokens.access_token)
        email = profile.get("email")
        return self._build_identity(
            user_id=profile.get("sub"),
            display_name=profile.get("name"),
            emails=[email] if email else [],
            raw_profile=profile,
        )


__all__ = ["GoogleAdapter"]
