"""Router and provider configuration schemas."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlsplit

import httpx
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.requests import Request
from starlette.responses import Response

from oauth_router.core.config import Settings
from oauth_router.errors import AuthError
from oauth_router.schemas.identity import Identity

SuccessHook = Callable[[Request, Identity], Response | Awaitable[Response]]
FailureHook = Callable[[Request, AuthError], Response | Awaitable[Response]]

DEFAULT_SCOPES: tuple[str, ...] = ("email",)


class ProviderConfig(BaseModel):
    """Credentials shared by every provider; camelCase keys are accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    client_id: str = Field(min_length=1)
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    @field_validator("scopes", mode="before")
    @classmethod
    def default_scopes(cls, value: Any) -> Any:
        if value is None:
            return list(DEFAULT_SCOPES)
        return value


class GoogleConfig(ProviderConfig):
    client_secret: str = Field(min_length=1)


class MetaConfig(ProviderConfig):
    client_secret: str = Field(min_length=1)


class AppleConfig(ProviderConfig):
    team_id: str = Field(min_length=1)
    key_id: str = Field(min_length=1)
    private_key: str = Field(min_length=1, repr=False)

    @field_validator("private_key")
    @classmethod
    def load_private_key(cls, value: str) -> str:
        # Keys pasted into env files often carry literal "\n" sequences.
        pem = value.replace("\\n", "\n").strip() + "\n"
        try:
            key = load_pem_private_key(pem.encode("utf-8"), password=None)
        except (TypeError, ValueError) as exc:
            raise ValueError("private_key must be an unencrypted PEM private key") from exc
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise ValueError("private_key must be an EC (P-256) private key")
        return pem


class RouterConfig(BaseModel):
    """Everything needed to assemble one mountable OAuth router."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, arbitrary_types_allowed=True)

    base_url: str
    # Raw per-provider mappings; each enabled entry is validated by its provider model.
    providers: dict[str, Any] = Field(default_factory=dict)
    filter: list[str] = Field(default_factory=list)
    on_success: SuccessHook | None = None
    on_failure: FailureHook | None = None
    session_secret: str | None = Field(default=None, repr=False)
    settings: Settings | None = None
    http_transport: httpx.AsyncBaseTransport | None = None

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def mount_path(self) -> str:
        return urlsplit(self.base_url).path or "/"

    @property
    def is_https(self) -> bool:
        return urlsplit(self.base_url).scheme == "https"


__all__ = [
    "AppleConfig",
    "DEFAULT_SCOPES",
    "FailureHook",
    "GoogleConfig",
    "MetaConfig",
    "ProviderConfig",
    "RouterConfig",
    "SuccessHook",
]
