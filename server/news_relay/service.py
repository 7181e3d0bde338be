"""
Relay Service

Wires the upstream link to the subscriber registry and exposes the
lifecycle (start/stop) and status used by the entry point and the health
endpoint.

    Tree of Alpha -> UpstreamLink -> normalize_news -> SubscriberRegistry.broadcast
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Union

from news_relay.models.news import NewsItem
from news_relay.upstream.link import UpstreamLink
from news_relay.ws_server.registry import SubscriberRegistry

if TYPE_CHECKING:
    from news_relay.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayStatus:
    """Relay health snapshot."""

    subscribers: int
    messages_relayed: int
    last_message_age: Union[int, str]  # whole seconds, or "never"
    uptime_seconds: float
    upstream_connected: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "clients": self.subscribers,
            "messages": self.messages_relayed,
            "lastMessage": self.last_message_age,
            "uptime": self.uptime_seconds,
            "upstreamConnected": self.upstream_connected,
        }


class RelayService:
    """
    Owns the upstream link and the subscriber registry.

    Every item the link produces is broadcast before the next upstream
    message is read, so subscribers see items in upstream order.
    """

    def __init__(
        self,
        link: UpstreamLink,
        registry: SubscriberRegistry,
        *,
        stats_interval: float = 60.0,
    ) -> None:
        self._link = link
        self._registry = registry
        self._stats_interval = stats_interval
        self._started_at = time.monotonic()
        self._stats_task: Optional[asyncio.Task[None]] = None
        self._running = False

        self._link.on_item(self._relay)

    @classmethod
    def from_settings(cls, settings: Settings) -> RelayService:
        """Build the service and its components from configuration."""
        link = UpstreamLink(
            settings.upstream.ws_url,
            has_api_key=settings.upstream.has_api_key,
            reconnect_delay=settings.relay.reconnect_delay_seconds,
        )
        registry = SubscriberRegistry(welcome_message=settings.relay.welcome_message)
        return cls(link, registry, stats_interval=settings.relay.stats_interval_seconds)

    @property
    def link(self) -> UpstreamLink:
        return self._link

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    @property
    def running(self) -> bool:
        return self._running

    async def _relay(self, item: NewsItem) -> None:
        delivered = await self._registry.broadcast(item)
        if delivered > 0:
            logger.debug(
                f"Broadcast to {delivered} subscribers",
                extra={"news_id": item.id},
            )

    async def start(self) -> None:
        """Begin upstream connection attempts and periodic stats logging."""
        if self._running:
            return
        self._running = True
        logger.info("Starting news relay")

        if self._stats_interval > 0:
            self._stats_task = asyncio.create_task(self._log_stats_periodically())

        await self._link.start()

    async def stop(self) -> None:
        """
        Stop the upstream link and close every subscriber.

        Safe to call from several shutdown paths; only the first call acts.
        """
        if not self._running:
            return
        self._running = False
        logger.info("Stopping news relay")

        await self._link.stop()

        if self._stats_task and not self._stats_task.done():
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass
        self._stats_task = None

        await self._registry.close_all()

        logger.info(
            "Final stats",
            extra={
                "messages_relayed": self._link.messages_received,
                "clients_served": self._registry.total_connections,
                "broadcasts": self._registry.messages_broadcast,
            },
        )

    def status(self) -> RelayStatus:
        """Current subscriber count, message count, last message age and uptime."""
        link_stats = self._link.stats()

        last_message_age: Union[int, str] = "never"
        if link_stats.last_message_time is not None:
            age = datetime.now(timezone.utc) - link_stats.last_message_time
            last_message_age = max(0, int(age.total_seconds()))

        return RelayStatus(
            subscribers=self._registry.size(),
            messages_relayed=link_stats.messages_received,
            last_message_age=last_message_age,
            uptime_seconds=round(time.monotonic() - self._started_at, 3),
            upstream_connected=self._link.connected,
        )

    async def _log_stats_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._stats_interval)
            status = self.status()
            last = (
                f"{status.last_message_age}s ago"
                if status.last_message_age != "never"
                else "never"
            )
            logger.info(
                f"Stats: {status.subscribers} clients | "
                f"{status.messages_relayed} messages | Last: {last} | "
                f"Uptime: {int(status.uptime_seconds)}s"
            )
