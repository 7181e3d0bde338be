"""
News Relay Configuration

Centralized configuration. All environment variables MUST be defined here.
No os.getenv() calls allowed elsewhere.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import quote

from news_relay.models.news import DEFAULT_WELCOME_MESSAGE


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _optional_env(name: str, default: str = "") -> str:
    """Get an optional environment variable with a default."""
    return os.environ.get(name, default)


def _optional_env_int(name: str, default: int) -> int:
    """Get an optional integer environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {name}: {value}")


def _optional_env_float(name: str, default: float) -> float:
    """Get an optional float environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Invalid number value for {name}: {value}")


@dataclass(frozen=True)
class UpstreamConfig:
    """Tree of Alpha WebSocket connection configuration."""
    api_key: str = ""
    ws_base_url: str = "wss://news.treeofalpha.com/ws"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def ws_url(self) -> str:
        """Get the full WebSocket URL, with the API key when configured."""
        if not self.api_key:
            return self.ws_base_url
        separator = "&" if "?" in self.ws_base_url else "?"
        return f"{self.ws_base_url}{separator}api-key={quote(self.api_key, safe='')}"


@dataclass(frozen=True)
class WebSocketServerConfig:
    """WebSocket server configuration for subscriber connections."""
    host: str
    port: int
    path: str = "/ws"
    health_path: str = "/health"


@dataclass(frozen=True)
class RelayConfig:
    """Relay behaviour settings."""
    reconnect_delay_seconds: float = 5.0
    stats_interval_seconds: float = 60.0
    welcome_message: str = DEFAULT_WELCOME_MESSAGE


@dataclass(frozen=True)
class Settings:
    """Root configuration container."""
    upstream: UpstreamConfig
    websocket_server: WebSocketServerConfig
    relay: RelayConfig
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Load all settings from environment variables.

    The API key is optional; without it the relay connects in free-tier mode.
    """
    upstream = UpstreamConfig(
        api_key=_optional_env("TREE_OF_ALPHA_API_KEY", ""),
        ws_base_url=_optional_env(
            "TREE_OF_ALPHA_WS_URL", "wss://news.treeofalpha.com/ws"
        ),
    )

    websocket_server = WebSocketServerConfig(
        host=_optional_env("HOST", "0.0.0.0"),
        port=_optional_env_int("PORT", 7777),
        path=_optional_env("WS_PATH", "/ws"),
    )

    relay = RelayConfig(
        reconnect_delay_seconds=_optional_env_float("RECONNECT_DELAY_SECONDS", 5.0),
        stats_interval_seconds=_optional_env_float("STATS_INTERVAL_SECONDS", 60.0),
        welcome_message=_optional_env("WELCOME_MESSAGE", DEFAULT_WELCOME_MESSAGE),
    )

    if relay.reconnect_delay_seconds <= 0:
        raise ConfigurationError(
            f"RECONNECT_DELAY_SECONDS must be positive, got {relay.reconnect_delay_seconds}"
        )

    return Settings(
        upstream=upstream,
        websocket_server=websocket_server,
        relay=relay,
        log_level=_optional_env("LOG_LEVEL", "INFO").upper(),
    )
