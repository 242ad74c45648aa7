"""Agent tool implementations for RSS Reader.

Items are addressed by feed name plus their position in that feed, as
shown by ``get_items`` and ``get_filtered_items``.
"""

import asyncio
import json

from langchain_core.tools import tool

from rss_reader.filters import FilterValidationError
from rss_reader.models import FeedDefinition, FeedItem
from rss_reader.reader import RssReader
from rss_reader.storage import PersistenceError

# Module-level reader reference, set during agent initialization
_reader: RssReader | None = None


def set_reader(reader: RssReader) -> None:
    """Set the reader instance used by all tools."""
    global _reader
    _reader = reader


def _get_reader() -> RssReader:
    """Get the reader instance, raising if not set."""
    if _reader is None:
        raise RuntimeError("Reader not initialized. Call set_reader() first.")
    return _reader


def _error(message: str, **extra) -> str:
    return json.dumps({"status": "error", "message": message, **extra})


@tool
def list_feeds() -> str:
    """List all configured feeds with their folder, item counts and last fetch time."""
    reader = _get_reader()

    feeds = []
    for feed in reader.settings.feeds:
        content = reader.store.get(feed.name)
        items = content.items if content else []
        feeds.append({
            "name": feed.name,
            "url": feed.url,
            "folder": feed.folder,
            "item_count": len(items),
            "unread_count": sum(1 for item in items if not item.read),
            "last_fetched_at": (
                content.fetched_at.isoformat() if content and content.fetched_at else None
            ),
        })

    return json.dumps({
        "feeds": feeds,
        "total": len(feeds),
        "refresh_interval_minutes": reader.settings.update_time,
    })


@tool
def add_feed(name: str, url: str, folder: str = "") -> str:
    """Add an RSS or Atom feed and fetch it right away.

    Args:
        name: A unique name for the feed.
        url: The URL of the RSS or Atom feed.
        folder: Optional folder to group the feed under.
    """
    reader = _get_reader()

    try:
        reader.add_feed(FeedDefinition(name=name.strip(), url=url.strip(), folder=folder.strip()))
    except (ValueError, PersistenceError) as e:
        return _error(str(e))

    result = asyncio.run(reader.refresh([name.strip()]))
    response = {"status": "added", "feed": name.strip()}
    if result is None:
        response["warning"] = "A refresh is already running; items will appear after it"
    elif result.failed:
        response["warning"] = result.failed.get(name.strip())
    else:
        content = reader.store.get(name.strip())
        response["item_count"] = len(content.items) if content else 0
    return json.dumps(response)


@tool
def remove_feed(name: str) -> str:
    """Remove a feed and all of its stored items.

    Args:
        name: The name of the feed to remove.
    """
    reader = _get_reader()

    try:
        removed = reader.delete_feed(name)
    except PersistenceError as e:
        return _error(str(e))
    if not removed:
        return _error(f"No feed named '{name}'")
    return json.dumps({"status": "removed", "feed": name})


@tool
def refresh_feeds() -> str:
    """Fetch all feeds now and report which ones failed."""
    reader = _get_reader()

    try:
        result = asyncio.run(reader.refresh())
    except PersistenceError as e:
        return _error(str(e))
    if result is None:
        return json.dumps({"status": "busy", "message": "A refresh is already running"})
    return json.dumps({
        "status": "success",
        "updated": result.updated,
        "failed": result.failed,
    })


@tool
def get_items(feed_name: str = "", unread_only: bool = False, limit: int = 20) -> str:
    """Get feed items in feed order, optionally for one feed or unread only.

    Args:
        feed_name: Optional feed name to restrict to.
        unread_only: If true, only return unread items.
        limit: Maximum number of items to return (default 20).
    """
    reader = _get_reader()

    if feed_name:
        content = reader.store.get(feed_name)
        if content is None:
            return _error(f"No feed named '{feed_name}'")
        contents = [content]
    else:
        contents = reader.store.all()

    items = [
        _item_to_json(item, index)
        for content in contents
        for index, item in enumerate(content.items)
        if not (unread_only and item.read)
    ]
    return json.dumps({
        "items": items[:limit],
        "total": len(items),
        "has_more": len(items) > limit,
    })


@tool
def list_filtered_folders() -> str:
    """List the filtered folders with their definition and number of matching items."""
    reader = _get_reader()

    return json.dumps({
        "folders": [
            {
                "name": result.filter.name,
                "filter_type": result.filter.filter_type.value,
                "filter_content": result.filter.filter_content,
                "sort_order": result.filter.sort_order.value if result.filter.sort_order else None,
                "item_count": len(result.items),
            }
            for result in reader.filtered
        ],
    })


@tool
def get_filtered_items(folder_name: str, limit: int = 20) -> str:
    """Get the items of a filtered folder, in the folder's sort order.

    Args:
        folder_name: Name of the filtered folder.
        limit: Maximum number of items to return (default 20).
    """
    reader = _get_reader()

    for result in reader.filtered:
        if result.filter.name == folder_name:
            items = [_item_to_json(item, _index_of(reader, item)) for item in result.items]
            return json.dumps({
                "folder": folder_name,
                "items": items[:limit],
                "total": len(items),
                "has_more": len(items) > limit,
            })
    return _error(f"No filtered folder named '{folder_name}'")


@tool
def mark_as_read(feed_name: str, indexes: list[int] | None = None) -> str:
    """Mark items of a feed as read, or the whole feed if no indexes are given.

    Args:
        feed_name: The feed the items belong to.
        indexes: Optional positions of the items within the feed.
    """
    reader = _get_reader()

    try:
        if not indexes:
            marked = reader.mark_feed_read(feed_name)
        else:
            marked = _set_read_at(reader, feed_name, indexes, True)
    except (ValueError, PersistenceError) as e:
        return _error(str(e))

    return json.dumps({"status": "success", "items_marked": marked})


@tool
def mark_as_unread(feed_name: str, indexes: list[int]) -> str:
    """Mark one or more items of a feed as unread.

    Args:
        feed_name: The feed the items belong to.
        indexes: Positions of the items within the feed.
    """
    reader = _get_reader()

    try:
        marked = _set_read_at(reader, feed_name, indexes, False)
    except (ValueError, PersistenceError) as e:
        return _error(str(e))

    return json.dumps({"status": "success", "items_marked": marked})


@tool
def set_favorite(feed_name: str, index: int, favorite: bool = True) -> str:
    """Add an item to, or remove it from, the favorites.

    Args:
        feed_name: The feed the item belongs to.
        index: Position of the item within the feed.
        favorite: True to favorite, False to unfavorite.
    """
    reader = _get_reader()

    try:
        reader.set_favorite(_resolve(reader, feed_name, index), favorite)
    except (ValueError, PersistenceError) as e:
        return _error(str(e))
    return json.dumps({"status": "success", "favorite": favorite})


@tool
def set_tags(feed_name: str, index: int, tags: list[str]) -> str:
    """Replace the tags of an item. Tags may not contain spaces or '#', or be numbers.

    Args:
        feed_name: The feed the item belongs to.
        index: Position of the item within the feed.
        tags: The complete new list of tags (empty to clear).
    """
    reader = _get_reader()

    try:
        reader.set_tags(_resolve(reader, feed_name, index), tags)
    except (ValueError, PersistenceError) as e:
        return _error(str(e))
    return json.dumps({"status": "success", "tags": sorted(set(tags))})


@tool
def create_filter(
    name: str,
    filter_type: str,
    filter_content: str = "",
    sort_order: str = "DATE_NEWEST",
) -> str:
    """Create a filtered folder.

    Args:
        name: Unique name of the folder.
        filter_type: One of READ, UNREAD, FAVORITES, TAGS.
        filter_content: Comma-separated feed folders to restrict to (empty for
            all), or for TAGS the comma-separated tags to match.
        sort_order: One of ALPHABET_NORMAL, ALPHABET_INVERTED, DATE_NEWEST, DATE_OLDEST.
    """
    reader = _get_reader()

    try:
        reader.add_filter(name, filter_type, filter_content, sort_order)
    except (FilterValidationError, PersistenceError) as e:
        return _error(str(e))

    created = reader.settings.get_filter(name.strip())
    count = next(
        (len(result.items) for result in reader.filtered if result.filter.name == name.strip()),
        0,
    )
    return json.dumps({
        "status": "created",
        "folder": {
            "name": created.name,
            "filter_type": created.filter_type.value,
            "filter_content": created.filter_content,
            "sort_order": created.sort_order.value,
            "item_count": count,
        },
    })


@tool
def delete_filter(name: str) -> str:
    """Delete a filtered folder. The items themselves are not affected.

    Args:
        name: Name of the folder to delete.
    """
    reader = _get_reader()

    try:
        deleted = reader.delete_filter(name)
    except PersistenceError as e:
        return _error(str(e))
    if not deleted:
        return _error(f"No filtered folder named '{name}'")
    return json.dumps({"status": "deleted", "folder": name})


@tool
def set_refresh_interval(minutes: int) -> str:
    """Set how often feeds are refreshed automatically.

    Args:
        minutes: Interval in minutes; 0 turns automatic refresh off.
    """
    reader = _get_reader()

    try:
        reader.set_update_time(minutes)
    except (ValueError, PersistenceError) as e:
        return _error(str(e))
    return json.dumps({"status": "success", "refresh_interval_minutes": minutes})


# --- Helper functions ---


def _resolve(reader: RssReader, feed_name: str, index: int) -> FeedItem:
    """Look up an item by feed name and position."""
    content = reader.store.get(feed_name)
    if content is None:
        raise ValueError(f"No feed named '{feed_name}'")
    if not 0 <= index < len(content.items):
        raise ValueError(f"Feed '{feed_name}' has no item {index}")
    return content.items[index]


def _set_read_at(reader: RssReader, feed_name: str, indexes: list[int], read: bool) -> int:
    for index in indexes:
        _resolve(reader, feed_name, index)
    for index in indexes:
        # Each write replaces the stored item objects
        reader.set_read(_resolve(reader, feed_name, index), read)
    return len(indexes)


def _index_of(reader: RssReader, item: FeedItem) -> int | None:
    content = reader.store.get(item.feed)
    if content is None:
        return None
    for index, stored in enumerate(content.items):
        if stored is item:
            return index
    for index, stored in enumerate(content.items):
        if stored.identity == item.identity:
            return index
    return None


def _item_to_json(item: FeedItem, index: int | None) -> dict:
    return {
        "feed": item.feed,
        "index": index,
        "folder": item.folder,
        "title": item.title,
        "link": item.link,
        "summary": (item.description or item.content or "")[:200],
        "published_at": item.pub_date.isoformat() if item.pub_date else None,
        "read": item.read,
        "favorite": item.favorite,
        "tags": sorted(item.tags),
    }
