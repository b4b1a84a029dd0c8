"""In-memory store for pending authorization round-trips."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import secrets
import threading
import time


@dataclass(slots=True, frozen=True)
class AuthState:
    provider: str
    token: str
    created_at: float
    redirect_target: str | None = None


class InMemoryStateStore:
    """Thread-safe single-use state tokens with a bounded lifetime.

    Expired entries are treated as absent on every read and are purged by an
    opportunistic sweep from ``issue`` at most once per ``sweep_interval_seconds``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 600,
        sweep_interval_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, AuthState] = {}
        self._last_sweep_at = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def issue(self, provider: str, *, redirect_target: str | None = None) -> AuthState:
        now = self._clock()
        state = AuthState(
            provider=provider,
            token=secrets.token_urlsafe(32),
            created_at=now,
            redirect_target=redirect_target,
        )
        with self._lock:
            if now - self._last_sweep_at >= self._sweep_interval_seconds:
                self._sweep_locked(now)
            self._states[state.token] = state
        return state

    def consume(self, token: str | None, provider: str) -> AuthState | None:
        """Remove and return a live state issued for ``provider``; None otherwise."""
        if not token:
            return None

        now = self._clock()
        with self._lock:
            state = self._states.pop(token, None)
        if state is None or self._is_expired(state, now):
            return None
        if state.provider != provider:
            return None
        return state

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [token for token, state in self._states.items() if self._is_expired(state, now)]
        for token in expired:
            del self._states[token]
        self._last_sweep_at = now
        return len(expired)

    def _is_expired(self, state: AuthState, now: float) -> bool:
        return now - state.created_at >= self._ttl_seconds
