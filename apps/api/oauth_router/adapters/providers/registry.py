"""Closed set of supported providers, keyed by configuration name."""

from oauth_router.adapters.providers.apple import AppleAdapter
from oauth_router.adapters.providers.base import ProviderAdapter
from oauth_router.adapters.providers.google import GoogleAdapter
from oauth_router.adapters.providers.meta import MetaAdapter
from oauth_router.schemas.config import AppleConfig, GoogleConfig, MetaConfig, ProviderConfig

PROVIDER_REGISTRY: dict[str, tuple[type[ProviderConfig], type[ProviderAdapter]]] = {
    GoogleAdapter.name: (GoogleConfig, GoogleAdapter),
    MetaAdapter.name: (MetaConfig, MetaAdapter),
    AppleAdapter.name: (AppleConfig, AppleAdapter),
}

__all__ = ["PROVIDER_REGISTRY"]
