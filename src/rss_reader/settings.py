"""Settings schema, JSON (de)serialization and legacy data migration.

The persisted blob keeps the camelCase keys of older plugin data files so
existing ``data.json`` files load and migrate in place.
"""

import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

from rss_reader.filters import FilterValidationError, parse_filter_type, parse_sort_order
from rss_reader.models import (
    FeedContent,
    FeedDefinition,
    FeedItem,
    FilterDefinition,
    Settings,
    SortOrder,
)

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_TIME = 60  # minutes

LEGACY_KEYS = ("read", "favorites")


def default_settings(update_time: int = DEFAULT_UPDATE_TIME) -> Settings:
    """Settings for a fresh install."""
    return Settings(update_time=update_time)


# --- Migration ---


def migrate_legacy(blob: dict) -> bool:
    """Fold the pre-0.6 ``read``/``favorites`` lists into per-item flags.

    Items are matched on (title, link, content). Legacy entries that match
    nothing are ignored. Both legacy keys are removed afterwards.

    Returns:
        True if the blob was changed and must be persisted, False if it had
        no legacy keys.
    """
    if not any(key in blob for key in LEGACY_KEYS):
        return False

    read_keys = _legacy_identities(blob.get("read"))
    favorite_keys = _legacy_identities(blob.get("favorites"))

    marked_read = marked_favorite = 0
    for content in _iter_contents(blob.get("items")):
        for item in content.get("items") or []:
            key = _identity(item)
            if key in read_keys:
                item["read"] = True
                marked_read += 1
            if key in favorite_keys:
                item["favorite"] = True
                marked_favorite += 1

    for key in LEGACY_KEYS:
        blob.pop(key, None)

    logger.info(
        "Migrated legacy data: %d read, %d favorite items", marked_read, marked_favorite
    )
    return True


def _legacy_identities(section: Any) -> set[tuple]:
    if isinstance(section, dict):
        entries = section.get("items") or []
    elif isinstance(section, list):
        entries = section
    else:
        entries = []
    return {_identity(entry) for entry in entries if isinstance(entry, dict)}


def _identity(entry: dict) -> tuple:
    return (entry.get("title"), entry.get("link"), entry.get("content"))


def _iter_contents(items: Any) -> list[dict]:
    # Old files stored contents as an index-keyed object, newer as a name-keyed one
    if isinstance(items, dict):
        values = items.values()
    elif isinstance(items, list):
        values = items
    else:
        return []
    return [content for content in values if isinstance(content, dict)]


# --- Deserialization ---


def settings_from_dict(blob: dict, update_time: int = DEFAULT_UPDATE_TIME) -> Settings:
    """Build Settings from a persisted blob, falling back to defaults for missing keys.

    Feeds and filters without a name cannot be addressed, so they are
    skipped with a warning.
    """
    feeds = []
    for feed_blob in blob.get("feeds") or []:
        if not isinstance(feed_blob, dict) or not feed_blob.get("name"):
            logger.warning("Skipping feed without a name: %r", feed_blob)
            continue
        feeds.append(feed_from_dict(feed_blob))

    items: dict[str, FeedContent] = {}
    for content_blob in _iter_contents(blob.get("items")):
        content = content_from_dict(content_blob)
        items[content.name] = content

    filtered = []
    for filter_blob in blob.get("filtered") or []:
        if not isinstance(filter_blob, dict) or not filter_blob.get("name"):
            logger.warning("Skipping filter without a name: %r", filter_blob)
            continue
        try:
            filtered.append(filter_from_dict(filter_blob))
        except FilterValidationError as e:
            logger.warning("Skipping filter '%s': %s", filter_blob.get("name"), e)

    return Settings(
        feeds=feeds,
        items=items,
        filtered=filtered,
        update_time=int(blob.get("updateTime", update_time)),
    )


def feed_from_dict(data: dict) -> FeedDefinition:
    return FeedDefinition(
        name=data["name"],
        url=data.get("url", ""),
        folder=data.get("folder") or "",
    )


def content_from_dict(data: dict) -> FeedContent:
    name = data.get("name") or data.get("title", "")
    folder = data.get("folder") or ""
    return FeedContent(
        name=name,
        url=data.get("url", ""),
        folder=folder,
        title=data.get("title", ""),
        description=data.get("description"),
        link=data.get("link"),
        image=data.get("image"),
        fetched_at=_str_to_dt(data.get("fetchedAt")),
        items=[item_from_dict(i, name, folder) for i in data.get("items") or []],
    )


def item_from_dict(data: dict, feed: str = "", folder: str = "") -> FeedItem:
    return FeedItem(
        title=data.get("title", ""),
        link=data.get("link", ""),
        content=data.get("content", ""),
        pub_date=_str_to_dt(data.get("pubDate")),
        description=data.get("description"),
        creator=data.get("creator"),
        enclosure=data.get("enclosure"),
        feed=data.get("feed") or feed,
        folder=data.get("folder") or folder,
        read=bool(data.get("read", False)),
        favorite=bool(data.get("favorite", False)),
        tags=set(data.get("tags") or []),
    )


def filter_from_dict(data: dict) -> FilterDefinition:
    """Build a FilterDefinition; an unknown sort order loads as unsorted.

    Raises:
        FilterValidationError: If the filter type is unknown.
    """
    sort_order: SortOrder | None = None
    raw_order = data.get("sortOrder", SortOrder.DATE_NEWEST)
    if raw_order is not None:
        try:
            sort_order = parse_sort_order(raw_order)
        except FilterValidationError as e:
            logger.warning("Filter '%s' will be unsorted: %s", data.get("name"), e)

    return FilterDefinition(
        name=data["name"],
        filter_type=parse_filter_type(data.get("filterType", "")),
        filter_content=data.get("filterContent") or "",
        sort_order=sort_order,
    )


# --- Serialization ---


def settings_to_dict(settings: Settings) -> dict:
    return {
        "feeds": [feed_to_dict(f) for f in settings.feeds],
        "items": {name: content_to_dict(c) for name, c in settings.items.items()},
        "filtered": [filter_to_dict(f) for f in settings.filtered],
        "updateTime": settings.update_time,
    }


def feed_to_dict(feed: FeedDefinition) -> dict:
    return {"name": feed.name, "url": feed.url, "folder": feed.folder}


def content_to_dict(content: FeedContent) -> dict:
    return {
        "name": content.name,
        "url": content.url,
        "folder": content.folder,
        "title": content.title,
        "description": content.description,
        "link": content.link,
        "image": content.image,
        "fetchedAt": _dt_to_str(content.fetched_at),
        "items": [item_to_dict(i) for i in content.items],
    }


def item_to_dict(item: FeedItem) -> dict:
    return {
        "title": item.title,
        "link": item.link,
        "content": item.content,
        "pubDate": _dt_to_str(item.pub_date),
        "description": item.description,
        "creator": item.creator,
        "enclosure": item.enclosure,
        "feed": item.feed,
        "folder": item.folder,
        "read": item.read,
        "favorite": item.favorite,
        "tags": sorted(item.tags),
    }


def filter_to_dict(folder: FilterDefinition) -> dict:
    return {
        "name": folder.name,
        "filterType": folder.filter_type.value,
        "filterContent": folder.filter_content,
        "sortOrder": folder.sort_order.value if folder.sort_order else None,
    }


# --- Helper functions ---


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Convert stored ISO string back to datetime; unparseable values become None."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except (TypeError, ValueError):
        pass
    # Older data files kept the feed's own RFC 822 date strings
    try:
        return parsedate_to_datetime(s)
    except (TypeError, ValueError):
        return None
