"""
Upstream Client Module

WebSocket link to the Tree of Alpha news feed and its message normalizer.
"""
from news_relay.upstream.link import LinkState, LinkStats, UpstreamLink
from news_relay.upstream.normalizer import normalize_news

__all__ = [
    "LinkState",
    "LinkStats",
    "UpstreamLink",
    "normalize_news",
]
