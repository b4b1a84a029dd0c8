"""OAuth provider adapters."""

from .apple import AppleAdapter
from .base import ProviderAdapter, TokenSet
from .google import GoogleAdapter
from .meta import MetaAdapter
from .registry import PROVIDER_REGISTRY

__all__ = [
    "PROVIDER_REGISTRY",
    "AppleAdapter",
    "GoogleAdapter",
    "MetaAdapter",
    "ProviderAdapter",
    "TokenSet",
]
