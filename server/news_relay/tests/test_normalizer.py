"""
Tests for news_relay.upstream.normalizer

Pure unit tests — no network, no mocking required.
"""
from datetime import datetime

import pytest

from news_relay.models.news import NewsCategory, NewsItem
from news_relay.upstream.normalizer import (
    categorize,
    extract_contracts,
    extract_tokens,
    normalize_news,
    parse_timestamp,
)

ADDRESS_A = "0x" + "a1" * 20
ADDRESS_B = "0x" + "B2" * 20


# ── Defaults ──────────────────────────────────────────────────────────────────

def test_empty_message_is_fully_populated():
    item = normalize_news({})

    assert isinstance(item, NewsItem)
    assert item.id.startswith("news-")
    assert item.source == "tree_of_alpha"
    assert item.title is None
    assert item.body == ""
    assert item.url is None
    assert item.timestamp
    assert item.category is NewsCategory.GENERAL
    assert item.contracts == ()
    assert item.tokens == ()


def test_generated_ids_are_unique():
    assert normalize_news({}).id != normalize_news({}).id


def test_non_mapping_payload_degrades_to_defaults():
    item = normalize_news(["not", "a", "dict"])  # type: ignore[arg-type]
    assert item.category is NewsCategory.GENERAL
    assert item.body == ""


def test_default_timestamp_is_parseable_utc():
    item = normalize_news({})
    assert item.timestamp.endswith("Z")
    datetime.fromisoformat(item.timestamp.replace("Z", "+00:00"))


# ── Field derivation ──────────────────────────────────────────────────────────

def test_fields_copied_from_message():
    item = normalize_news(
        {
            "id": "abc123",
            "source": "Twitter",
            "title": "Headline",
            "text": "Body text",
            "url": "https://example.com/a",
            "timestamp": "2025-07-24T17:06:15.272Z",
        }
    )

    assert item.id == "abc123"
    assert item.source == "Twitter"
    assert item.title == "Headline"
    assert item.body == "Body text"
    assert item.url == "https://example.com/a"
    assert item.timestamp == "2025-07-24T17:06:15.272Z"


def test_fallback_fields():
    item = normalize_news(
        {
            "tweetId": 1815000000000000000,
            "user": "cz_binance",
            "body": "Fallback body",
            "link": "https://x.com/status/1",
            "createdAt": "2025-01-01T00:00:00Z",
        }
    )

    assert item.id == "1815000000000000000"
    assert item.title == "@cz_binance"
    assert item.body == "Fallback body"
    assert item.url == "https://x.com/status/1"
    assert item.timestamp == "2025-01-01T00:00:00Z"


def test_title_wins_over_user():
    item = normalize_news({"title": "Real title", "user": "someone"})
    assert item.title == "Real title"


@pytest.mark.parametrize("source", [0, False, "", None])
def test_falsy_source_uses_default(source):
    assert normalize_news({"source": source}).source == "tree_of_alpha"


def test_source_is_kept_when_present():
    assert normalize_news({"source": "Binance"}).source == "Binance"


def test_text_wins_over_body():
    item = normalize_news({"text": "from text", "body": "from body"})
    assert item.body == "from text"


@pytest.mark.parametrize(
    "value, expected",
    [
        (1735689600000, "2025-01-01T00:00:00.000Z"),
        (1735689600, "2025-01-01T00:00:00.000Z"),
        ("2025-07-24T17:06:15Z", "2025-07-24T17:06:15Z"),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_parse_timestamp_garbage_falls_back_to_now():
    assert parse_timestamp({"nested": True}).endswith("Z")
    assert parse_timestamp(True).endswith("Z")


# ── Categorization ────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "text, expected",
    [
        ("New token LAUNCHING today", NewsCategory.LAUNCH),
        ("Claim your Airdrop now", NewsCategory.AIRDROP),
        ("Binance will list XYZ - listing at 10:00 UTC", NewsCategory.LISTING),
        ("ABC listed on Coinbase", NewsCategory.LISTING),
        ("Protocol exploit drains pool", NewsCategory.SECURITY),
        ("Critical vulnerability disclosed", NewsCategory.SECURITY),
        ("Price alert: BTC above 100k", NewsCategory.SECURITY),
        ("Fed holds rates steady", NewsCategory.GENERAL),
    ],
)
def test_categorize(text, expected):
    assert categorize(text) is expected


def test_launch_beats_security():
    assert categorize("Launch postponed after hack") is NewsCategory.LAUNCH


def test_priority_order_across_all_categories():
    assert categorize("airdrop listing hack") is NewsCategory.AIRDROP
    assert categorize("listing after exploit") is NewsCategory.LISTING


def test_lists_only_matches_as_a_whole_word():
    assert categorize("Exchange X lists $FOO") is NewsCategory.LISTING
    assert categorize("Specialists warn of exploit in bridge") is NewsCategory.SECURITY
    assert categorize("Updated checklists for validators") is NewsCategory.GENERAL


def test_category_uses_title_when_text_missing():
    item = normalize_news({"title": "Airdrop season"})
    assert item.category is NewsCategory.AIRDROP


def test_category_prefers_text_over_title():
    item = normalize_news({"text": "Weekly recap", "title": "Exchange hack"})
    assert item.category is NewsCategory.GENERAL


# ── Extraction ────────────────────────────────────────────────────────────────

def test_single_contract_extracted():
    assert extract_contracts(f"CA: {ADDRESS_A} go") == (ADDRESS_A,)


def test_contracts_deduplicated_in_first_seen_order():
    text = f"{ADDRESS_B} then {ADDRESS_A} and again {ADDRESS_B}"
    assert extract_contracts(text) == (ADDRESS_B, ADDRESS_A)


def test_contract_case_is_preserved():
    item = normalize_news({"text": f"Deployed at {ADDRESS_B}"})
    assert item.contracts == (ADDRESS_B,)


def test_short_hex_is_not_a_contract():
    assert extract_contracts("tx 0xdeadbeef") == ()


def test_tokens_are_uppercase_only():
    item = normalize_news({"text": "Buy $BTC and $eth now"})
    assert item.tokens == ("BTC",)


def test_tokens_deduplicated_in_first_seen_order():
    assert extract_tokens("$SOL $BTC $SOL $ETH") == ("SOL", "BTC", "ETH")


def test_token_length_bounds():
    assert extract_tokens("$A $ABCDEFGHIJK $OK") == ("OK",)


def test_extraction_reads_body_when_no_text_or_title():
    item = normalize_news({"body": f"$PEPE at {ADDRESS_A}"})
    assert item.tokens == ("PEPE",)
    assert item.contracts == (ADDRESS_A,)


# ── End to end ────────────────────────────────────────────────────────────────

def test_exchange_listing_message():
    address = "0xABCDEF0123456789ABCDEF0123456789ABCDEF0"
    item = normalize_news(
        {"type": "news", "text": f"Exchange X lists $FOO, contract {address}"}
    )

    assert item.category is NewsCategory.LISTING
    assert item.tokens == ("FOO",)
    assert item.contracts == (address,)


def test_news_item_is_immutable():
    item = normalize_news({"text": "hello"})
    with pytest.raises(AttributeError):
        item.body = "changed"  # type: ignore[misc]
