"""Utilities for safe structured logging fields."""

from __future__ import annotations

import hashlib
from typing import Any
from uuid import uuid4

from starlette.requests import Request


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for state tokens and user ids."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def request_correlation_id(request: Request) -> str:
    """Reuse the caller's ``X-Correlation-Id`` or mint one for this request."""
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id") or f"req-{uuid4()}"
    request.state.correlation_id = correlation_id
    return correlation_id
