"""Observable in-memory table of feed content."""

import logging
from collections.abc import Callable, Iterable

from rss_reader.models import FeedContent, FeedItem

logger = logging.getLogger(__name__)

StoreListener = Callable[["FeedContentStore"], None]


class FeedContentStore:
    """Feed content keyed by feed name, with change notification.

    The folder grouping is rebuilt from scratch after every write, never
    patched in place.
    """

    def __init__(self, contents: dict[str, FeedContent] | None = None):
        self._contents: dict[str, FeedContent] = dict(contents or {})
        self._grouped: dict[str, list[FeedContent]] = {}
        self._listeners: list[StoreListener] = []
        self._regroup()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener called after each write. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, feed_name: str) -> FeedContent | None:
        return self._contents.get(feed_name)

    def replace(self, feed_name: str, content: FeedContent) -> None:
        """Install new content for a feed and notify listeners."""
        self._contents[feed_name] = content
        self._changed()

    def remove(self, feed_name: str) -> bool:
        """Drop a feed's content. Returns True if there was any."""
        if self._contents.pop(feed_name, None) is None:
            return False
        self._changed()
        return True

    def replace_many(
        self, contents: dict[str, FeedContent], removed: Iterable[str] = ()
    ) -> bool:
        """Install and drop several feeds as one write.

        Listeners are notified once, after the whole batch is in place.
        Returns True if anything changed.
        """
        changed = bool(contents)
        self._contents.update(contents)
        for feed_name in removed:
            if self._contents.pop(feed_name, None) is not None:
                changed = True
        if changed:
            self._changed()
        return changed

    def reset(self, contents: dict[str, FeedContent]) -> None:
        """Replace the whole table at once (used when settings are reloaded)."""
        self._contents = dict(contents)
        self._changed()

    def all(self) -> list[FeedContent]:
        return list(self._contents.values())

    def items(self) -> list[FeedItem]:
        """All items of all feeds, flattened in feed order."""
        return [item for content in self._contents.values() for item in content.items]

    def grouped(self) -> dict[str, list[FeedContent]]:
        """Feed contents grouped by folder."""
        return {folder: list(contents) for folder, contents in self._grouped.items()}

    def _regroup(self) -> None:
        grouped: dict[str, list[FeedContent]] = {}
        for content in self._contents.values():
            grouped.setdefault(content.folder, []).append(content)
        self._grouped = grouped

    def _changed(self) -> None:
        self._regroup()
        for listener in list(self._listeners):
            listener(self)
