"""
News Relay Core Utilities

Exceptions and reconnection bookkeeping shared across the relay.
"""
from news_relay.core.types import (
    AuthenticationError,
    ConnectionError,
    NewsRelayError,
    ReconnectionState,
)

__all__ = [
    "AuthenticationError",
    "ConnectionError",
    "NewsRelayError",
    "ReconnectionState",
]
