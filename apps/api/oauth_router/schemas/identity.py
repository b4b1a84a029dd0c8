"""Identity schemas."""

from typing import Any

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """Provider-neutral result of a successful authorization-code exchange."""

    provider: str = Field(min_length=1)
    provider_user_id: str = Field(min_length=1)
    display_name: str | None = None
    emails: list[str] = Field(default_factory=list)
    raw_profile: dict[str, Any] = Field(default_factory=dict)
