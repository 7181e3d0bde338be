"""
News Data Models

Canonical news item broadcast to subscribers.
All models use frozen dataclasses with __post_init__ validation.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

DEFAULT_SOURCE = "tree_of_alpha"

DEFAULT_WELCOME_MESSAGE = (
    "Connected to AlfaDAO News Server. "
    "Streaming live crypto news from Tree of Alpha."
)


def utc_now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision and Z suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class NewsCategory(str, Enum):
    """News category derived from keywords in the item text."""

    GENERAL = "general"
    LAUNCH = "launch"
    AIRDROP = "airdrop"
    LISTING = "listing"
    SECURITY = "security"


@dataclass(frozen=True)
class NewsItem:
    """
    Normalized news item in the relay's wire schema.

    Every field is always populated; ``title`` and ``url`` are the only
    nullable ones. ``contracts`` and ``tokens`` are deduplicated and keep
    the order in which they first appear in the text.
    """

    id: str
    source: str
    title: Optional[str]
    body: str
    url: Optional[str]
    timestamp: str
    category: NewsCategory
    contracts: tuple[str, ...] = ()
    tokens: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.id:
            raise ValueError("id must be non-empty string")
        if not self.timestamp:
            raise ValueError("timestamp must be non-empty string")
