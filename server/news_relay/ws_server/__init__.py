"""
WebSocket Server for News Distribution

Registers subscribers and broadcasts news items to them.
"""
from news_relay.ws_server.registry import (
    Subscriber,
    SubscriberRegistry,
    build_welcome_item,
)
from news_relay.ws_server.serializer import news_item_to_dict, serialize_news_item
from news_relay.ws_server.server import NewsWebSocketServer

__all__ = [
    "NewsWebSocketServer",
    "Subscriber",
    "SubscriberRegistry",
    "build_welcome_item",
    "news_item_to_dict",
    "serialize_news_item",
]
