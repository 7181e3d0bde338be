"""
News Relay Data Models

Frozen dataclasses with validation.
"""
from news_relay.models.news import (
    DEFAULT_SOURCE,
    DEFAULT_WELCOME_MESSAGE,
    NewsCategory,
    NewsItem,
    utc_now_iso,
)

__all__ = [
    "DEFAULT_SOURCE",
    "DEFAULT_WELCOME_MESSAGE",
    "NewsCategory",
    "NewsItem",
    "utc_now_iso",
]
