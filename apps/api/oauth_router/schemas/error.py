"""Failure response schemas."""

from pydantic import BaseModel

from oauth_router.errors import GENERIC_FAILURE_MESSAGE


class FailureResponse(BaseModel):
    error: str = GENERIC_FAILURE_MESSAGE
