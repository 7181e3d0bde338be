"""
Tree of Alpha WebSocket Link

Single persistent connection to the upstream news feed, with fixed-interval
reconnection that runs until the link is stopped.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus

from news_relay.core.types import (
    AuthenticationError,
    ConnectionError,
    ReconnectionState,
)
from news_relay.models.news import NewsItem
from news_relay.upstream.normalizer import normalize_news

logger = logging.getLogger(__name__)

USER_AGENT = "AlfaDAO-News-Aggregator/1.0"

SERVICE_NAME = "tree_of_alpha"

_API_KEY_PATTERN = re.compile(r"(api-key=)[^&]+")

# Type aliases for callbacks and the connection factory
ItemCallback = Callable[[NewsItem], Awaitable[Any]]
Connector = Callable[..., Awaitable[ClientConnection]]


class LinkState(str, Enum):
    """Upstream connection state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class LinkStats:
    """Point-in-time snapshot of the link counters."""

    state: LinkState
    messages_received: int
    last_message_time: Optional[datetime]
    reconnect_attempts: int


def mask_api_key(url: str) -> str:
    """Hide the api-key query value for logging."""
    return _API_KEY_PATTERN.sub(r"\1***", url)


class UpstreamLink:
    """
    WebSocket client for the Tree of Alpha news stream.

    Each news message is normalized and handed to the registered item
    callback in arrival order. Every close, whatever its cause, schedules
    exactly one reconnect after ``reconnect_delay`` seconds.
    """

    def __init__(
        self,
        ws_url: str,
        *,
        has_api_key: bool = False,
        reconnect_delay: float = 5.0,
        connector: Optional[Connector] = None,
        ping_interval: float = 20.0,
        ping_timeout: float = 10.0,
        close_timeout: float = 5.0,
    ) -> None:
        """
        Initialize the link.

        Args:
            ws_url: Full WebSocket URL, including the api-key query if any
            has_api_key: False runs in free-tier mode (advisory log only)
            reconnect_delay: Fixed delay before each reconnect (seconds)
            connector: Coroutine factory opening the connection; defaults
                to websockets.asyncio.client.connect
            ping_interval: Interval between ping frames (seconds)
            ping_timeout: Timeout for pong response (seconds)
            close_timeout: Timeout for close handshake (seconds)
        """
        self._ws_url = ws_url
        self._safe_url = mask_api_key(ws_url)
        self._has_api_key = has_api_key
        self._connector = connector or connect
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._close_timeout = close_timeout

        # Connection state
        self._ws: Optional[ClientConnection] = None
        self._state = LinkState.DISCONNECTED
        self._should_reconnect = False
        self._reconnection_state = ReconnectionState(delay_seconds=reconnect_delay)
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None

        # Callbacks
        self._on_item: Optional[ItemCallback] = None

        # Stats
        self._messages_received = 0
        self._last_message_time: Optional[datetime] = None

        # Task management
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._receive_task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def connected(self) -> bool:
        """Check if currently connected."""
        return self._state is LinkState.CONNECTED and self._ws is not None

    @property
    def reconnect_pending(self) -> bool:
        """True while a reconnect is scheduled but has not fired yet."""
        return self._reconnect_handle is not None

    @property
    def messages_received(self) -> int:
        """Get total news messages received."""
        return self._messages_received

    @property
    def last_message_time(self) -> Optional[datetime]:
        """Get timestamp of last received news message."""
        return self._last_message_time

    def on_item(self, callback: ItemCallback) -> None:
        """Register callback for normalized news items."""
        self._on_item = callback

    async def start(self) -> None:
        """Enable automatic reconnection and open the first connection."""
        self._should_reconnect = True
        await self.connect()

    async def connect(self) -> None:
        """
        Open the upstream connection.

        No-op while a connection is open or being opened. A failed attempt
        is logged and followed by a scheduled reconnect.
        """
        if self._state is not LinkState.DISCONNECTED:
            return

        self._state = LinkState.CONNECTING
        try:
            ws = await self._open_connection()

        except AuthenticationError as e:
            logger.error(
                "Tree of Alpha rejected credentials, check TREE_OF_ALPHA_API_KEY",
                extra={"error": str(e)},
            )
            self._handle_disconnect()
            return

        except ConnectionError as e:
            logger.error(
                "Failed to connect to Tree of Alpha",
                extra={"error": str(e)},
            )
            self._handle_disconnect()
            return

        if not self._should_reconnect:
            # stop() ran while the handshake was in flight
            await ws.close()
            self._state = LinkState.DISCONNECTED
            return

        self._ws = ws
        self._state = LinkState.CONNECTED
        self._reconnection_state.reset()

        logger.info("Connected to Tree of Alpha", extra={"url": self._safe_url})
        if not self._has_api_key:
            logger.warning("No API key - using free tier (may have delays)")

        self._receive_task = asyncio.create_task(self._receive_loop(ws))

    async def _open_connection(self) -> ClientConnection:
        """Single connection attempt."""
        logger.info("Connecting to Tree of Alpha", extra={"url": self._safe_url})

        try:
            return await self._connector(
                self._ws_url,
                user_agent_header=USER_AGENT,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
                close_timeout=self._close_timeout,
            )

        except InvalidStatus as e:
            status_code = e.response.status_code
            if status_code in (401, 403):
                raise AuthenticationError(
                    "Invalid Tree of Alpha API key",
                    service=SERVICE_NAME,
                ) from e
            raise ConnectionError(
                f"Connection failed with status {status_code}",
                service=SERVICE_NAME,
                retry_count=self._reconnection_state.attempt_count,
            ) from e

        except Exception as e:
            raise ConnectionError(
                f"Failed to connect: {e}",
                service=SERVICE_NAME,
                retry_count=self._reconnection_state.attempt_count,
            ) from e

    async def _receive_loop(self, ws: ClientConnection) -> None:
        """Main receive loop for WebSocket messages."""
        try:
            async for message in ws:
                await self._handle_message(message)

        except ConnectionClosed as e:
            logger.warning(
                f"Tree of Alpha error: connection closed "
                f"(code={getattr(e.rcvd, 'code', None)}, "
                f"reason={getattr(e.rcvd, 'reason', None)})"
            )
        except Exception as e:
            logger.error(
                "Tree of Alpha error",
                extra={"error": str(e)},
                exc_info=True,
            )
            # The socket may still be open; drop it before reconnecting
            await self._close_connection(ws)
        finally:
            if self._ws is ws:
                self._ws = None
            self._handle_disconnect()

    async def _handle_message(self, message: str | bytes) -> None:
        """
        Handle incoming WebSocket message.

        Args:
            message: Raw message from WebSocket
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")

            data = json.loads(message)

        except Exception as e:
            logger.error(
                "Error processing message",
                extra={
                    "error": str(e),
                    "raw_message": str(message)[:500],
                },
            )
            return

        if not isinstance(data, dict):
            return
        if data.get("type") != "news" and not data.get("text"):
            return

        self._messages_received += 1
        self._last_message_time = datetime.now(timezone.utc)

        news_item = normalize_news(data)

        preview = str(data.get("text") or data.get("title") or "")[:60]
        logger.info(
            f"[{self._messages_received}] {preview}...",
            extra={"news_id": news_item.id, "category": news_item.category.value},
        )

        if self._on_item:
            try:
                await self._on_item(news_item)
            except Exception as e:
                logger.error(
                    "Item callback failed",
                    extra={
                        "error": str(e),
                        "news_id": news_item.id,
                    },
                    exc_info=True,
                )

    async def _close_connection(self, ws: ClientConnection) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning(
                "Error closing WebSocket",
                extra={"error": str(e)},
            )

    def _handle_disconnect(self) -> None:
        """Mark the link down and schedule a reconnect unless stopped."""
        self._state = LinkState.DISCONNECTED
        if not self._should_reconnect or self._reconnect_handle is not None:
            return

        delay = self._reconnection_state.next_delay()
        logger.info(
            f"Tree of Alpha connection closed, reconnecting in {delay:g}s...",
            extra={"attempt": self._reconnection_state.attempt_count},
        )
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self._fire_reconnect)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if not self._should_reconnect:
            return
        self._connect_task = asyncio.create_task(self.connect())

    async def stop(self) -> None:
        """
        Close the connection and stop reconnecting.

        Safe to call more than once. No reconnect runs after this returns.
        """
        self._should_reconnect = False

        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass

        ws = self._ws
        self._ws = None
        if ws is not None:
            logger.info("Disconnecting from Tree of Alpha")
            await self._close_connection(ws)

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass

        self._state = LinkState.DISCONNECTED

        logger.info(
            "Tree of Alpha link stopped",
            extra={"messages_received": self._messages_received},
        )

    def stats(self) -> LinkStats:
        """Get a consistent snapshot of connection statistics."""
        return LinkStats(
            state=self._state,
            messages_received=self._messages_received,
            last_message_time=self._last_message_time,
            reconnect_attempts=self._reconnection_state.attempt_count,
        )
