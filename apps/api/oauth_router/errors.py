"""OAuth router exception types."""

from __future__ import annotations

GENERIC_FAILURE_MESSAGE = "Authentication Failed"


class ConfigError(ValueError):
    """Raised while building a router from invalid or incomplete configuration."""


class AuthError(Exception):
    """Per-request authentication failure that ends on the failure endpoint.

    The message is always generic; ``code`` carries the internal reason and is
    only visible to ``on_failure`` hooks and logs.
    """

    code = "AUTHENTICATION_FAILED"

    def __init__(self, code: str | None = None, *, provider: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.provider = provider
        super().__init__(GENERIC_FAILURE_MESSAGE)

    @classmethod
    def from_code(cls, code: str | None, provider: str | None = None) -> AuthError:
        """Rebuild the error subclass matching a stored error code."""
        error_type = _ERRORS_BY_CODE.get(code or "", AuthError)
        if error_type is AuthError:
            return AuthError(code, provider=provider)
        return error_type(provider=provider)


class StateMismatchError(AuthError):
    """Returned state was never issued, already consumed, expired, or not bound to this browser."""

    code = "STATE_MISMATCH"


class TokenExchangeError(AuthError):
    """Authorization code could not be exchanged for tokens."""

    code = "TOKEN_EXCHANGE_FAILED"


class ProfileFetchError(AuthError):
    """Provider profile could not be fetched or decoded."""

    code = "PROFILE_FETCH_FAILED"


_ERRORS_BY_CODE: dict[str, type[AuthError]] = {
    StateMismatchError.code: StateMismatchError,
    TokenExchangeError.code: TokenExchangeError,
    ProfileFetchError.code: ProfileFetchError,
}


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "AuthError",
    "ConfigError",
    "ProfileFetchError",
    "StateMismatchError",
    "TokenExchangeError",
]
