"""
News Relay Service Entry Point

Receives news from Tree of Alpha and broadcasts it to connected subscribers.
No storage - just live streaming.
"""
from __future__ import annotations

import asyncio
import logging
import signal

from dotenv import load_dotenv

# Configure logging before importing config (which may fail)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> None:
    """
    Main entry point - runs the relay until a shutdown signal arrives.

    1. Starts a WebSocket server for subscribers (plus /health)
    2. Connects to the Tree of Alpha WebSocket
    3. Broadcasts every normalized news item to all connected subscribers
    """
    from news_relay.config import load_settings
    from news_relay.service import RelayService
    from news_relay.ws_server import NewsWebSocketServer

    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)

    service = RelayService.from_settings(settings)
    ws_server = NewsWebSocketServer(
        service.registry,
        service.status,
        host=settings.websocket_server.host,
        port=settings.websocket_server.port,
        path=settings.websocket_server.path,
        health_path=settings.websocket_server.health_path,
    )

    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info(f"{sig.name} received, shutting down gracefully...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        await ws_server.start()
        await service.start()
        await shutdown_event.wait()
    finally:
        logger.info("Shutting down...")
        await service.stop()
        await ws_server.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    asyncio.run(main())


if __name__ == "__main__":
    run()
