"""Router configuration loaded from the environment."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    environment: Literal["development", "production"] = "production"
    session_secret: str | None = None
    session_cookie: str = "oauth_router_session"
    session_max_age_seconds: int = 600
    state_ttl_seconds: int = 600
    state_sweep_interval_seconds: int = 60
    http_timeout_seconds: float = 10.0

    # Used by the example host application only.
    base_url: str | None = None
    google_client_id: str | None = None
    google_client_secret: str | None = None
    meta_client_id: str | None = None
    meta_client_secret: str | None = None
    apple_client_id: str | None = None
    apple_team_id: str | None = None
    apple_key_id: str | None = None
    apple_private_key: str | None = None

    model_config = SettingsConfigDict(env_prefix="OAUTH_ROUTER_", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
