"""RSS/Atom feed fetching and parsing using feedparser."""

import logging
from datetime import datetime, timezone
from time import struct_time
from urllib.parse import urlparse

import feedparser

from rss_reader.models import FeedContent, FeedDefinition, FeedItem

logger = logging.getLogger(__name__)


class FeedParseError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


def fetch_feed(definition: FeedDefinition) -> FeedContent:
    """Fetch and parse a configured feed.

    Args:
        definition: The feed to fetch.

    Returns:
        FeedContent with feed metadata and items in feed order. User state
        on the items is at its defaults; merging happens afterwards.

    Raises:
        FeedParseError: If the URL is invalid, unreachable, or not a valid feed.
    """
    _validate_url(definition.url)

    parsed = feedparser.parse(definition.url)

    if parsed.get("status", 200) in (401, 403):
        raise FeedParseError(
            "Feed requires authentication. Ensure the URL is publicly accessible."
        )

    if parsed.get("status", 200) >= 400:
        raise FeedParseError(
            f"Could not reach URL: HTTP {parsed.get('status', 'unknown')}"
        )

    return _build_content(parsed, definition)


def parse_feed(document: str | bytes, definition: FeedDefinition) -> FeedContent:
    """Parse an already downloaded RSS or Atom document.

    Raises:
        FeedParseError: If the document is not a valid feed.
    """
    return _build_content(feedparser.parse(document), definition)


def _build_content(parsed, definition: FeedDefinition) -> FeedContent:
    if not parsed.feed.get("title") and not parsed.entries:
        raise FeedParseError("URL does not point to a valid RSS or Atom feed")

    if parsed.bozo:
        logger.info(
            "Feed '%s' has formatting issues: %s",
            definition.name,
            parsed.get("bozo_exception"),
        )

    image = parsed.feed.get("image") or {}
    return FeedContent(
        name=definition.name,
        url=definition.url,
        folder=definition.folder,
        title=parsed.feed.get("title", definition.name),
        description=parsed.feed.get("description") or parsed.feed.get("subtitle"),
        link=parsed.feed.get("link"),
        image=image.get("href") if hasattr(image, "get") else None,
        fetched_at=datetime.now(timezone.utc),
        items=_extract_items(parsed.entries, definition),
    )


def _validate_url(url: str) -> None:
    """Validate that the URL has a valid format."""
    try:
        result = urlparse(url)
        if not result.scheme or not result.netloc:
            raise FeedParseError("Invalid URL format")
        if result.scheme not in ("http", "https"):
            raise FeedParseError("Invalid URL format: only http and https are supported")
    except ValueError:
        raise FeedParseError("Invalid URL format")


def _extract_items(entries: list, definition: FeedDefinition) -> list[FeedItem]:
    """Build FeedItems from feedparser entries, keeping feed order."""
    items = []
    for entry in entries:
        try:
            summary = entry.get("summary") or entry.get("description")
            items.append(
                FeedItem(
                    title=entry.get("title", ""),
                    link=entry.get("link", ""),
                    content=_entry_content(entry) or summary or "",
                    pub_date=_parse_date(entry),
                    description=summary,
                    creator=entry.get("author"),
                    enclosure=_entry_enclosure(entry),
                    feed=definition.name,
                    folder=definition.folder,
                )
            )
        except (AttributeError, KeyError, TypeError) as e:
            logger.warning("Feed '%s': skipping malformed entry: %s", definition.name, e)
            continue
    return items


def _entry_content(entry: dict) -> str | None:
    for content in entry.get("content") or []:
        value = content.get("value")
        if value:
            return value
    return None


def _entry_enclosure(entry: dict) -> str | None:
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href")
        if href:
            return href
    return None


def _parse_date(entry: dict) -> datetime | None:
    """Parse publication date from a feedparser entry (feedparser normalizes to UTC)."""
    for field in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(field)
        if isinstance(time_struct, struct_time):
            try:
                return datetime(*time_struct[:6], tzinfo=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None
