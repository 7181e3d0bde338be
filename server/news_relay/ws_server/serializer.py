"""
News Item Serializer

Converts a NewsItem into the JSON frame sent to subscribers. Field names and
null conventions are the public wire format: ``title`` and ``url`` may be
null, ``contracts`` and ``tokens`` are always arrays.
"""
from __future__ import annotations

import json
from typing import Any

from news_relay.models.news import NewsItem


def news_item_to_dict(item: NewsItem) -> dict[str, Any]:
    """Serialize a NewsItem to a JSON-serializable dict."""
    return {
        "id": item.id,
        "source": item.source,
        "title": item.title,
        "body": item.body,
        "url": item.url,
        "timestamp": item.timestamp,
        "category": item.category.value,
        "contracts": list(item.contracts),
        "tokens": list(item.tokens),
    }


def serialize_news_item(item: NewsItem) -> str:
    """Encode a NewsItem as a JSON text frame."""
    return json.dumps(news_item_to_dict(item))
