"""
Tree of Alpha Data Normalizer

Transforms raw Tree of Alpha WebSocket messages into the NewsItem schema.

The normalizer is total: upstream gives no schema guarantee, so every field
is read defensively and falls back to a default instead of raising.
"""
from __future__ import annotations

import re
import time
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from news_relay.models.news import (
    DEFAULT_SOURCE,
    NewsCategory,
    NewsItem,
    utc_now_iso,
)

# 0x-prefixed EVM contract addresses; 39 digits covers a dropped leading zero
CONTRACT_PATTERN = re.compile(r"0x[a-fA-F0-9]{39,40}")

# $TICKER, uppercase only
TOKEN_PATTERN = re.compile(r"\$([A-Z]{2,10})\b")

# Checked in order, first match wins. Keywords are substrings unless wrapped in \b
CATEGORY_KEYWORDS: tuple[tuple[NewsCategory, tuple[str, ...]], ...] = (
    (NewsCategory.LAUNCH, ("launch", "launching")),
    (NewsCategory.AIRDROP, ("airdrop",)),
    (NewsCategory.LISTING, ("listing", "listed on", r"\blists\b")),
    (NewsCategory.SECURITY, ("hack", "exploit", "vulnerability", "alert")),
)

_CATEGORY_PATTERNS = tuple(
    (category, re.compile("|".join(keywords))) for category, keywords in CATEGORY_KEYWORDS
)

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 10_000_000_000


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    """Return the first truthy value among keys, or None."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def generate_news_id() -> str:
    """Build a fallback id: news-<epoch millis>-<random token>."""
    return f"news-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def parse_timestamp(value: Any) -> str:
    """
    Coerce an upstream timestamp to an ISO 8601 string.

    Strings are passed through untouched. Numbers are treated as epoch
    seconds, or epoch milliseconds when large enough. Anything else yields
    the current time.
    """
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return utc_now_iso()
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return utc_now_iso()


def categorize(text: str) -> NewsCategory:
    """Assign a category from keywords, in fixed priority order."""
    lowered = text.lower()
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return NewsCategory.GENERAL


def extract_contracts(text: str) -> tuple[str, ...]:
    """Find contract addresses, deduplicated in first-seen order."""
    return tuple(dict.fromkeys(CONTRACT_PATTERN.findall(text)))


def extract_tokens(text: str) -> tuple[str, ...]:
    """Find $TICKER symbols (without the $), deduplicated in first-seen order."""
    return tuple(dict.fromkeys(TOKEN_PATTERN.findall(text)))


def _build_title(raw: Mapping[str, Any]) -> Optional[str]:
    title = raw.get("title")
    if title:
        return _as_text(title)
    user = raw.get("user")
    if user:
        return f"@{_as_text(user)}"
    return None


def normalize_news(raw: Mapping[str, Any]) -> NewsItem:
    """
    Transform a single Tree of Alpha message into a NewsItem.

    Args:
        raw: Parsed message from the Tree of Alpha WebSocket

    Returns:
        Fully populated NewsItem. Never raises on missing or odd fields.
    """
    if not isinstance(raw, Mapping):
        raw = {}

    # Categorization and extraction look at the text, falling back to title
    analysed = _as_text(_first(raw, "text", "title") or raw.get("body"))

    item_id = _first(raw, "id", "tweetId")
    source = _first(raw, "source")
    url = _first(raw, "url", "link")

    return NewsItem(
        id=_as_text(item_id) if item_id else generate_news_id(),
        source=_as_text(source) if source else DEFAULT_SOURCE,
        title=_build_title(raw),
        body=_as_text(_first(raw, "text", "body")),
        url=_as_text(url) if url else None,
        timestamp=parse_timestamp(_first(raw, "timestamp", "createdAt")),
        category=categorize(analysed),
        contracts=extract_contracts(analysed),
        tokens=extract_tokens(analysed),
    )
