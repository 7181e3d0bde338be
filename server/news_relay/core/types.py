"""
Core Type Definitions and Exceptions

Service-specific types and exceptions shared by the relay components.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


class NewsRelayError(Exception):
    """Base exception for all news relay errors."""

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class ConnectionError(NewsRelayError):
    """Raised when the upstream connection cannot be opened."""

    def __init__(
        self,
        message: str,
        service: str,
        retry_count: int = 0,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["service"] = service
        ctx["retry_count"] = retry_count
        super().__init__(message, ctx)
        self.service = service
        self.retry_count = retry_count


class AuthenticationError(NewsRelayError):
    """Raised when the upstream rejects our credentials."""

    def __init__(
        self,
        message: str,
        service: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        ctx = context or {}
        ctx["service"] = service
        super().__init__(message, ctx)
        self.service = service


@dataclass
class ReconnectionState:
    """Tracks reconnection attempts for fixed-interval backoff.

    The delay never grows and there is no attempt cap: the upstream is
    retried every ``delay_seconds`` until the link is stopped.
    """

    delay_seconds: float = 5.0
    attempt_count: int = field(default=0, init=False)

    def next_delay(self) -> float:
        """Record an attempt and return the delay before it runs."""
        self.attempt_count += 1
        return self.delay_seconds

    def reset(self) -> None:
        """Reset state after successful connection."""
        self.attempt_count = 0
