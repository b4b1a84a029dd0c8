"""Sign in with Apple adapter.

Apple has no client secret string and no profile endpoint. The token request
is authenticated with a short-lived ES256 JWT signed by the developer key, and
the user is read from the ``id_token`` returned by the token endpoint. The
authorization response is form-posted back (``response_mode=form_post``); on
the first login only, Apple adds a ``user`` JSON field carrying the name.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
import time
from typing import Any

import httpx
import jwt

from oauth_router.adapters.providers.base import ProviderAdapter, TokenSet
from oauth_router.errors import ProfileFetchError
from oauth_router.schemas.config import AppleConfig
from oauth_router.schemas.identity import Identity

logger = logging.getLogger(__name__)

APPLE_ISSUER = "https://appleid.apple.com"
_CLIENT_SECRET_TTL_SECONDS = 300


class AppleAdapter(ProviderAdapter[AppleConfig]):
    name = "apple"
    authorization_endpoint = f"{APPLE_ISSUER}/auth/authorize"
    token_endpoint = f"{APPLE_ISSUER}/auth/token"
    callback_method = "POST"
    binds_session = False

    def extra_authorization_params(self) -> dict[str, str]:
        return {"response_mode": "form_post"}

    def client_secret(self) -> str:
        now = int(time.time())
        claims = {
            "iss": self.config.team_id,
            "iat": now,
            "exp": now + _CLIENT_SECRET_TTL_SECONDS,
            "aud": APPLE_ISSUER,
            "sub": self.config.client_id,
        }
        return jwt.encode(
            claims,
            self.config.private_key,
            algorithm="ES256",
            headers={"kid": self.config.key_id},
        )

    async def fetch_identity(
        self,
        client: httpx.AsyncClient,
        *,
        tokens: TokenSet,
        params: Mapping[str, str],
    ) -> Identity:
        if not tokens.id_token:
            logger.warning("oauth.profile_fetch_failed provider=apple reason=missing_id_token")
            raise ProfileFetchError(provider=self.name)

        # Token comes straight from the token endpoint; claims are checked, the signature is not.
        try:
            claims = jwt.decode(
                tokens.id_token,
                options={
                    "verify_signature": False,
                    "verify_exp": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    "require": ["sub", "exp"],
                },
                audience=self.config.client_id,
                issuer=APPLE_ISSUER,
            )
        except jwt.InvalidTokenError as exc:
            logger.warning("oauth.profile_fetch_failed provider=apple reason=%s", type(exc).__name__)
            raise ProfileFetchError(provider=self.name) from exc

        user = _parse_user(params.get("user"))
        raw_profile: dict[str, Any] = dict(claims)
        if user:
            raw_profile["user"] = user

        name = user.get("name") if isinstance(user.get("name"), dict) else {}
        display_name = " ".join(_text(name.get(part)) for part in ("firstName", "lastName") if _text(name.get(part)))
        email = _text(claims.get("email")) or _text(user.get("email"))
        return self._build_identity(
            user_id=claims.get("sub"),
            display_name=display_name,
            emails=[email] if email else [],
            raw_profile=raw_profile,
        )


def _parse_user(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    try:
        user = json.loads(value)
    except ValueError:
        logger.info("oauth.apple_user_ignored reason=malformed_json")
        return {}
    return user if isinstance(user, dict) else {}


def _text(value: Any) -> str:
    # The form-posted ``user`` field is client supplied; only non-empty strings are kept.
    return value.strip() if isinstance(value, str) else ""


__all__ = ["APPLE_ISSUER", "AppleAdapter"]
