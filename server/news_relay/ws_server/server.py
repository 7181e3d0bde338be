"""
WebSocket Server for News Distribution

Accepts subscriber connections on the stream path, registers each one with
the SubscriberRegistry for its lifetime, and answers health checks over
plain HTTP on the same port.
"""
from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Callable, Optional
from urllib.parse import urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosedError
from websockets.http11 import Request, Response

from news_relay.ws_server.registry import Subscriber, SubscriberRegistry

if TYPE_CHECKING:
    from news_relay.service import RelayStatus

logger = logging.getLogger(__name__)

StatusProvider = Callable[[], "RelayStatus"]


def _format_address(remote_address: Any) -> str:
    if not remote_address:
        return "unknown"
    if isinstance(remote_address, (tuple, list)):
        return ":".join(str(part) for part in remote_address[:2])
    return str(remote_address)


def _json_response(status: HTTPStatus, payload: dict[str, Any]) -> Response:
    body = json.dumps(payload).encode("utf-8")
    headers = Headers(
        [
            ("Content-Type", "application/json"),
            ("Content-Length", str(len(body))),
            ("Connection", "close"),
        ]
    )
    return Response(status.value, status.phrase, headers, body)


class NewsWebSocketServer:
    """
    WebSocket server that relays news to connected subscribers.

    Subscribers connect to ``path`` and receive the welcome item followed by
    every broadcast item. Frames sent by subscribers are ignored.
    """

    def __init__(
        self,
        registry: SubscriberRegistry,
        status_provider: StatusProvider,
        *,
        host: str = "0.0.0.0",
        port: int = 7777,
        path: str = "/ws",
        health_path: str = "/health",
    ) -> None:
        self._registry = registry
        self._status_provider = status_provider
        self._host = host
        self._port = port
        self._path = path
        self._health_path = health_path
        self._server: Optional[Server] = None

    async def start(self) -> None:
        """Start the WebSocket server."""
        self._server = await serve(
            self._handle_client,
            self._host,
            self._port,
            process_request=self._process_request,
            ping_interval=30,
            ping_timeout=10,
        )
        logger.info(
            f"WebSocket server started on ws://{self._host}:{self._port}{self._path} "
            f"(health: http://{self._host}:{self._port}{self._health_path})"
        )

    async def stop(self) -> None:
        """Stop the WebSocket server and disconnect all clients."""
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("WebSocket server stopped")

    def _process_request(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """
        Route the HTTP request before the WebSocket handshake.

        Returns None to continue the handshake, or a Response to answer
        the request directly.
        """
        path = urlsplit(request.path).path
        if path == self._health_path:
            return self._health_response()
        if path != self._path:
            return _json_response(HTTPStatus.NOT_FOUND, {"error": "Not found"})
        return None

    def _health_response(self) -> Response:
        status = self._status_provider()
        return _json_response(HTTPStatus.OK, {"status": "ok", **status.to_dict()})

    async def _handle_client(self, connection: ServerConnection) -> None:
        """Handle a new subscriber connection."""
        subscriber = Subscriber(
            connection, remote_address=_format_address(connection.remote_address)
        )
        client_count = await self._registry.add(subscriber)
        logger.info(
            f"Client connected from {subscriber.remote_address} (total: {client_count})"
        )

        try:
            async for _ in connection:
                pass

        except ConnectionClosedError as e:
            logger.warning(f"Client error from {subscriber.remote_address}: {e}")
        except Exception as e:
            logger.error(
                f"Client error from {subscriber.remote_address}: {e}",
                exc_info=True,
            )
        finally:
            await self._registry.remove(subscriber)
            logger.info(
                f"Client disconnected: {subscriber.remote_address} "
                f"(remaining: {self._registry.size()})"
            )

    @property
    def client_count(self) -> int:
        """Get current number of connected clients."""
        return self._registry.size()
