"""Reconcile freshly fetched items with previously stored user state."""

from collections.abc import Iterable

from rss_reader.models import FeedContent, FeedItem


def merge(previous_items: Iterable[FeedItem], fresh_items: Iterable[FeedItem]) -> list[FeedItem]:
    """Carry read/favorite/tags over to fresh items that were seen before.

    Items are matched on (title, link, content). Fresh items without a match
    start unread, not favorited and untagged. Previous items the feed no
    longer lists are dropped. Output keeps the order of ``fresh_items``.

    Note that a content edit at the source breaks the match, so the edited
    entry shows up as new and its old flags are lost. When a feed repeats an
    entry, copies are matched by position: the k-th fresh copy takes the
    flags of the k-th previous copy.
    """
    previous_by_identity: dict[tuple[str, str, str], list[FeedItem]] = {}
    for item in previous_items:
        previous_by_identity.setdefault(item.identity, []).append(item)

    seen: dict[tuple[str, str, str], int] = {}
    merged = []
    for item in fresh_items:
        copies = previous_by_identity.get(item.identity, [])
        position = seen.get(item.identity, 0)
        seen[item.identity] = position + 1
        if position < len(copies):
            previous = copies[position]
            item.read = previous.read
            item.favorite = previous.favorite
            item.tags = set(previous.tags)
        else:
            item.read = False
            item.favorite = False
            item.tags = set()
        merged.append(item)
    return merged


def merge_content(previous: FeedContent | None, fresh: FeedContent) -> FeedContent:
    """Merge a freshly fetched FeedContent against the stored one for the feed."""
    fresh.items = merge(previous.items if previous else [], fresh.items)
    return fresh
