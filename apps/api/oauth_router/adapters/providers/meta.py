"""Meta (Facebook Login) OAuth 2.0 adapter."""

from __future__ import annotations

from collections.abc import Mapping
import hashlib
import hmac

import httpx

from oauth_router.adapters.providers.base import ProviderAdapter, TokenSet
from oauth_router.schemas.config import MetaConfig
from oauth_router.schemas.identity import Identity

_GRAPH_VERSION = "v19.0"
_PROFILE_FIELDS = ("id", "name", "email")


class MetaAdapter(ProviderAdapter[MetaConfig]):
    name = "meta"
    authorization_endpoint = f"https://www.facebook.com/{_GRAPH_VERSION}/dialog/oauth"
    token_endpoint = f"https://graph.facebook.com/{_GRAPH_VERSION}/oauth/access_token"
    profile_endpoint = f"https://graph.facebook.com/{_GRAPH_VERSION}/me"
    scope_separator = ","

    def client_secret(self) -> str:
        return self.config.client_secret

    def appsecret_proof(self, access_token: str) -> str:
        """HMAC-SHA256 of the access token keyed by the app secret, required by apps with proof enforcement."""
        return hmac.new(
            self.config.client_secret.encode("utf-8"),
            access_token.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    async def fetch_identity(
        self,
        client: httpx.AsyncClient,
        *,
        tokens: TokenSet,
        params: Mapping[str, str],
    ) -> Identity:
        profile = await self._get_profile(
            client,
            self.profile_endpoint,
            access_token=tokens.access_token,
            params={
                "fields": ",".join(_PROFILE_FIELDS),
                "appsecret_proof": self.appsecret_proof(tokens.access_token),
            },
        )
        email = profile.get("email")
        return self._build_identity(
            user_id=profile.get("id"),
            display_name=profile.get("name"),
            emails=[email] if email else [],
            raw_profile=profile,
        )


__all__ = ["MetaAdapter"]
