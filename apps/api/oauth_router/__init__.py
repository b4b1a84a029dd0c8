"""Mountable Google, Meta and Apple sign-in for FastAPI applications."""

from oauth_router.errors import (
    AuthError,
    ConfigError,
    ProfileFetchError,
    StateMismatchError,
    TokenExchangeError,
)
from oauth_router.routes.oauth import create_oauth_router
from oauth_router.schemas.config import AppleConfig, GoogleConfig, MetaConfig, RouterConfig
from oauth_router.schemas.identity import Identity

__all__ = [
    "AppleConfig",
    "AuthError",
    "ConfigError",
    "GoogleConfig",
    "Identity",
    "MetaConfig",
    "ProfileFetchError",
    "RouterConfig",
    "StateMismatchError",
    "TokenExchangeError",
    "create_oauth_router",
]
