"""Route modules."""

from .oauth import create_oauth_router

__all__ = ["create_oauth_router"]
