"""
Subscriber Registry

Tracks connected downstream clients and fans news items out to them.
Membership changes and broadcast snapshots share one asyncio.Lock, so a
subscriber joining or leaving mid-broadcast never causes a skipped or
duplicated delivery within that pass.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Set

from websockets.protocol import State

from news_relay.models.news import (
    DEFAULT_WELCOME_MESSAGE,
    NewsCategory,
    NewsItem,
    utc_now_iso,
)
from news_relay.ws_server.serializer import serialize_news_item

if TYPE_CHECKING:
    from websockets.asyncio.server import ServerConnection

logger = logging.getLogger(__name__)

# Longest a single subscriber write may hold up a broadcast (seconds)
DEFAULT_SEND_TIMEOUT = 5.0


def build_welcome_item(message: str = DEFAULT_WELCOME_MESSAGE) -> NewsItem:
    """Synthetic item sent to every subscriber right after it connects."""
    return NewsItem(
        id="welcome",
        source="system",
        title="Connected",
        body=message,
        url=None,
        timestamp=utc_now_iso(),
        category=NewsCategory.GENERAL,
    )


@dataclass(eq=False)
class Subscriber:
    """A live client connection plus its remote address for logging."""

    connection: ServerConnection
    remote_address: str = "unknown"

    @property
    def is_open(self) -> bool:
        return self.connection.state is State.OPEN

    async def send(self, message: str) -> None:
        await self.connection.send(message)

    async def close(self, code: int = 1001, reason: str = "") -> None:
        await self.connection.close(code, reason)


class SubscriberRegistry:
    """
    Set of currently connected subscribers.

    The socket lifecycle is owned by the caller (the WebSocket server):
    it adds a subscriber on accept and removes it on disconnect. Broadcast
    never removes anyone, even when a send fails.
    """

    def __init__(
        self,
        welcome_message: str = DEFAULT_WELCOME_MESSAGE,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self._welcome_message = welcome_message
        self._send_timeout = send_timeout
        self._subscribers: Set[Subscriber] = set()
        self._lock = asyncio.Lock()
        self._total_connections = 0
        self._messages_broadcast = 0

    @property
    def total_connections(self) -> int:
        return self._total_connections

    @property
    def messages_broadcast(self) -> int:
        return self._messages_broadcast

    def size(self) -> int:
        """Current number of registered subscribers."""
        return len(self._subscribers)

    def __contains__(self, subscriber: Subscriber) -> bool:
        return subscriber in self._subscribers

    async def add(self, subscriber: Subscriber) -> int:
        """
        Greet and register a newly accepted subscriber.

        The welcome frame goes out before the subscriber joins the set, so it
        always precedes any broadcast on that socket. Returns the new count.
        """
        welcome = serialize_news_item(build_welcome_item(self._welcome_message))
        try:
            await subscriber.send(welcome)
        except Exception as e:
            logger.warning(
                f"Failed to send welcome to {subscriber.remote_address}: {e}"
            )

        async with self._lock:
            self._subscribers.add(subscriber)
            self._total_connections += 1
            return len(self._subscribers)

    async def remove(self, subscriber: Subscriber) -> bool:
        """Deregister a subscriber. Returns False if it was not registered."""
        async with self._lock:
            if subscriber not in self._subscribers:
                return False
            self._subscribers.discard(subscriber)
            return True

    async def broadcast(self, item: NewsItem) -> int:
        """
        Send a news item to every open subscriber.

        Returns the number of subscribers that received it.
        """
        # Snapshot so concurrent add/remove cannot affect this pass
        async with self._lock:
            subscribers = [s for s in self._subscribers if s.is_open]

        self._messages_broadcast += 1
        if not subscribers:
            return 0

        message = serialize_news_item(item)
        results = await asyncio.gather(
            *[self._send_to_subscriber(s, message) for s in subscribers],
            return_exceptions=True,
        )

        success_count = sum(1 for r in results if r is True)
        if success_count < len(subscribers):
            logger.debug(
                f"Broadcast: {success_count}/{len(subscribers)} subscribers "
                f"({len(subscribers) - success_count} failed)",
                extra={"news_id": item.id},
            )
        return success_count

    async def _send_to_subscriber(self, subscriber: Subscriber, message: str) -> bool:
        """Send message to a single subscriber, return True on success."""
        try:
            await asyncio.wait_for(subscriber.send(message), self._send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Send to {subscriber.remote_address} timed out after "
                f"{self._send_timeout:g}s, skipping"
            )
            return False
        except Exception as e:
            logger.warning(
                f"Failed to send to {subscriber.remote_address}: {e}"
            )
            return False

    async def close_all(
        self, code: int = 1001, reason: str = "Server shutting down"
    ) -> int:
        """Close and deregister every subscriber. Returns how many were closed."""
        async with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()

        if not subscribers:
            return 0

        results = await asyncio.gather(
            *[s.close(code, reason) for s in subscribers],
            return_exceptions=True,
        )
        for subscriber, result in zip(subscribers, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Error closing {subscriber.remote_address}: {result}"
                )

        logger.info(f"Closed {len(subscribers)} subscriber connection(s)")
        return len(subscribers)
