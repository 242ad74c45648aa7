"""State owner for RSS Reader: settings, feed content and filtered folders."""

import asyncio
import copy
import logging
import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from rss_reader.feed_parser import FeedParseError, fetch_feed
from rss_reader.filters import build_filter, evaluate
from rss_reader.merge import merge_content
from rss_reader.models import (
    FeedContent,
    FeedDefinition,
    FeedItem,
    FilteredFolderContent,
    FilterType,
    Settings,
    SortOrder,
)
from rss_reader.settings import (
    DEFAULT_UPDATE_TIME,
    default_settings,
    migrate_legacy,
    settings_from_dict,
    settings_to_dict,
)
from rss_reader.storage import SettingsStorage
from rss_reader.store import FeedContentStore

logger = logging.getLogger(__name__)

TAG_REGEX = re.compile(r"^[\w/-]+$")
NUMBER_REGEX = re.compile(r"^\d+$")

Fetcher = Callable[[FeedDefinition], FeedContent]


@dataclass
class ReaderState:
    """Snapshot handed to listeners after every change. Treat as read-only."""

    settings: Settings
    grouped: dict[str, list[FeedContent]]
    filtered: list[FilteredFolderContent]


@dataclass
class RefreshResult:
    """Outcome of one refresh cycle."""

    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


Listener = Callable[[ReaderState], None]


def validate_tag(tag: str) -> str:
    """Return the tag if it is usable, else raise ValueError."""
    if (
        not TAG_REGEX.match(tag)
        or NUMBER_REGEX.match(tag)
        or " " in tag
        or "#" in tag
    ):
        raise ValueError(f"'{tag}' is not a valid tag")
    return tag


class RssReader:
    """Owns the settings and derived views, and serializes every change.

    All mutations run under one lock: copy the current settings, apply the
    change, persist, and only then swap the copy in. A failed save leaves
    both the in-memory state and the file on disk as they were.
    """

    def __init__(
        self,
        storage: SettingsStorage,
        fetcher: Fetcher = fetch_feed,
        default_update_time: int = DEFAULT_UPDATE_TIME,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.default_update_time = default_update_time
        self.store = FeedContentStore()
        self._settings = default_settings(default_update_time)
        self._filtered: list[FilteredFolderContent] = []
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()
        self._refreshing = False
        self.store.subscribe(self._on_store_changed)

    # --- Observation ---

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def filtered(self) -> list[FilteredFolderContent]:
        return self._filtered

    @property
    def is_refreshing(self) -> bool:
        return self._refreshing

    def state(self) -> ReaderState:
        return ReaderState(
            settings=self._settings,
            grouped=self.store.grouped(),
            filtered=self._filtered,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_store_changed(self, store: FeedContentStore) -> None:
        self._filtered = evaluate(store.items(), self._settings.filtered)
        state = self.state()
        for listener in list(self._listeners):
            listener(state)

    # --- Loading and persistence ---

    def load(self) -> Settings:
        """Load settings from storage, migrating legacy data first.

        Raises:
            PersistenceError: If the settings file cannot be read, or the
                migrated blob cannot be written back.
        """
        with self._lock:
            blob = self.storage.load()
            if migrate_legacy(blob):
                self.storage.save(blob)
                logger.info("Legacy read/favorite data has been migrated")
            self._settings = settings_from_dict(blob, self.default_update_time)
            self.store.reset(self._settings.items)
            logger.info(
                "Loaded %d feeds and %d filtered folders",
                len(self._settings.feeds),
                len(self._settings.filtered),
            )
            return self._settings

    def _mutate(
        self,
        change: Callable[[Settings], None],
        feed_names: Iterable[str] | None = None,
    ) -> Settings:
        """Apply ``change`` to a copy of the settings, persist it, then commit.

        ``feed_names`` limits the store update to those feeds' slots; when
        omitted the whole store is rebuilt from the new settings.
        """
        with self._lock:
            updated = copy.deepcopy(self._settings)
            change(updated)
            self.storage.save(settings_to_dict(updated))
            self._settings = updated

            if feed_names is None:
                self.store.reset(updated.items)
                return updated

            replaced: dict[str, FeedContent] = {}
            removed: list[str] = []
            for name in feed_names:
                content = updated.items.get(name)
                if content is None:
                    removed.append(name)
                else:
                    replaced[name] = content
            if not self.store.replace_many(replaced, removed):
                # No content changed, but listeners still see the new settings
                self._on_store_changed(self.store)
            return updated

    # --- Refresh ---

    async def refresh(self, feed_names: Iterable[str] | None = None) -> RefreshResult | None:
        """Fetch feeds one at a time, merge them and store the batch.

        A feed that fails to fetch keeps its previous content. Returns None
        without doing anything if another refresh is still running.

        Args:
            feed_names: Only refresh these feeds. Defaults to all feeds.
        """
        with self._lock:
            if self._refreshing:
                logger.info("Refresh already in progress, skipping")
                return None
            self._refreshing = True

        try:
            wanted = set(feed_names) if feed_names is not None else None
            definitions = [
                feed for feed in self._settings.feeds if wanted is None or feed.name in wanted
            ]

            result = RefreshResult()
            fetched: dict[str, FeedContent] = {}
            for definition in definitions:
                try:
                    fetched[definition.name] = await asyncio.to_thread(self.fetcher, definition)
                except FeedParseError as e:
                    logger.warning("Feed '%s' error: %s", definition.name, e)
                    result.failed[definition.name] = str(e)
                except Exception as e:
                    logger.warning("Feed '%s' unexpected error: %s", definition.name, e)
                    result.failed[definition.name] = str(e)

            if fetched:
                self._store_fetched(fetched)
                result.updated = [name for name in fetched if name in self._settings.items]

            logger.info(
                "Refresh complete: %d updated, %d failed",
                len(result.updated),
                len(result.failed),
            )
            return result
        finally:
            with self._lock:
                self._refreshing = False

    def _store_fetched(self, fetched: dict[str, FeedContent]) -> None:
        def change(settings: Settings) -> None:
            for name, fresh in fetched.items():
                definition = settings.get_feed(name)
                if definition is None:
                    # Deleted while its fetch was in flight
                    continue
                _apply_definition(fresh, definition)
                settings.items[name] = merge_content(settings.items.get(name), fresh)

        self._mutate(change, feed_names=list(fetched))

    # --- Item state ---

    def _occurrence(self, item: FeedItem) -> int:
        """Count the earlier items of ``item``'s feed that share its identity."""
        content = self._settings.items.get(item.feed)
        if content is None:
            return 0
        count = 0
        for stored in content.items:
            if stored is item:
                return count
            if stored.identity == item.identity:
                count += 1
        return 0

    def set_read(self, item: FeedItem, read: bool = True) -> None:
        def change(settings: Settings) -> None:
            _locate(settings, item, self._occurrence(item)).read = read

        self._mutate(change, feed_names=[item.feed])

    def set_favorite(self, item: FeedItem, favorite: bool = True) -> None:
        def change(settings: Settings) -> None:
            _locate(settings, item, self._occurrence(item)).favorite = favorite

        self._mutate(change, feed_names=[item.feed])

    def set_tags(self, item: FeedItem, tags: Iterable[str]) -> None:
        """Replace an item's tags.

        Raises:
            ValueError: If a tag is invalid or the item is no longer stored.
        """
        new_tags = {validate_tag(tag.strip()) for tag in tags if tag.strip()}

        def change(settings: Settings) -> None:
            _locate(settings, item, self._occurrence(item)).tags = set(new_tags)

        self._mutate(change, feed_names=[item.feed])

    def mark_feed_read(self, feed_name: str) -> int:
        """Mark every item of a feed as read. Returns how many changed."""
        count = 0

        def change(settings: Settings) -> None:
            nonlocal count
            content = settings.items.get(feed_name)
            if content is None:
                raise ValueError(f"No feed named '{feed_name}'")
            for item in content.items:
                if not item.read:
                    item.read = True
                    count += 1

        self._mutate(change, feed_names=[feed_name])
        return count

    # --- Feeds ---

    def add_feed(self, definition: FeedDefinition) -> FeedDefinition:
        """Add a feed. Its content arrives with the next refresh.

        Raises:
            ValueError: If a feed with the same name already exists.
        """
        if not definition.name.strip():
            raise ValueError("Feed name cannot be empty")

        def change(settings: Settings) -> None:
            if settings.get_feed(definition.name) is not None:
                raise ValueError(f"A feed named '{definition.name}' already exists")
            settings.feeds.append(copy.copy(definition))

        self._mutate(change, feed_names=[])
        logger.info("Added feed '%s' (%s)", definition.name, definition.url)
        return definition

    def edit_feed(
        self,
        name: str,
        new_name: str | None = None,
        url: str | None = None,
        folder: str | None = None,
    ) -> FeedDefinition:
        """Change a feed's name, URL or folder, carrying its stored items along.

        Raises:
            ValueError: If the feed does not exist or the new name is taken.
        """

        def change(settings: Settings) -> None:
            definition = settings.get_feed(name)
            if definition is None:
                raise ValueError(f"No feed named '{name}'")
            if new_name and new_name != name:
                if settings.get_feed(new_name) is not None:
                    raise ValueError(f"A feed named '{new_name}' already exists")
                definition.name = new_name
            if url is not None:
                definition.url = url
            if folder is not None:
                definition.folder = folder

            content = settings.items.pop(name, None)
            if content is not None:
                _apply_definition(content, definition)
                settings.items[definition.name] = content

        updated = self._mutate(change)
        return updated.get_feed(new_name or name)

    def delete_feed(self, name: str) -> bool:
        """Remove a feed and its stored content. Returns False if it did not exist."""
        if self._settings.get_feed(name) is None:
            return False

        def change(settings: Settings) -> None:
            settings.feeds = [feed for feed in settings.feeds if feed.name != name]
            settings.items.pop(name, None)

        self._mutate(change, feed_names=[name])
        logger.info("Deleted feed '%s'", name)
        return True

    # --- Filtered folders ---

    def add_filter(
        self,
        name: str,
        filter_type: FilterType | str,
        filter_content: str = "",
        sort_order: SortOrder | str = SortOrder.DATE_NEWEST,
    ) -> None:
        """Add a filtered folder.

        Raises:
            FilterValidationError: If the definition is not valid.
        """

        def change(settings: Settings) -> None:
            settings.filtered.append(
                build_filter(name, filter_type, filter_content, sort_order, settings.filtered)
            )

        self._mutate(change)

    def edit_filter(
        self,
        name: str,
        new_name: str | None = None,
        filter_type: FilterType | str | None = None,
        filter_content: str | None = None,
        sort_order: SortOrder | str | None = None,
    ) -> None:
        """Change a filtered folder in place, keeping its position.

        Raises:
            ValueError: If no filter has this name.
            FilterValidationError: If the edited definition is not valid.
        """

        def change(settings: Settings) -> None:
            current = settings.get_filter(name)
            if current is None:
                raise ValueError(f"No filter named '{name}'")
            others = [folder for folder in settings.filtered if folder is not current]
            edited = build_filter(
                new_name if new_name is not None else current.name,
                filter_type if filter_type is not None else current.filter_type,
                filter_content if filter_content is not None else current.filter_content,
                sort_order if sort_order is not None else (current.sort_order or SortOrder.DATE_NEWEST),
                others,
            )
            settings.filtered[settings.filtered.index(current)] = edited

        self._mutate(change)

    def delete_filter(self, name: str) -> bool:
        """Remove a filtered folder. Returns False if it did not exist."""
        if self._settings.get_filter(name) is None:
            return False

        def change(settings: Settings) -> None:
            settings.filtered = [folder for folder in settings.filtered if folder.name != name]

        self._mutate(change)
        return True

    # --- Options ---

    def set_update_time(self, minutes: int) -> None:
        """Set the refresh interval in minutes; 0 disables automatic refresh."""
        if minutes < 0:
            raise ValueError("Refresh interval cannot be negative")

        def change(settings: Settings) -> None:
            settings.update_time = minutes

        self._mutate(change, feed_names=[])


# --- Helper functions ---


def _apply_definition(content: FeedContent, definition: FeedDefinition) -> None:
    """Copy a feed's name, URL and folder onto its content and items."""
    content.name = definition.name
    content.url = definition.url
    content.folder = definition.folder
    for item in content.items:
        item.feed = definition.name
        item.folder = definition.folder


def _locate(settings: Settings, item: FeedItem, occurrence: int = 0) -> FeedItem:
    """Find the stored counterpart of ``item`` in ``settings``.

    ``occurrence`` picks among items sharing the same identity, counted in
    feed order.
    """
    content = settings.items.get(item.feed)
    if content is not None:
        matches = [stored for stored in content.items if stored.identity == item.identity]
        if occurrence < len(matches):
            return matches[occurrence]
    raise ValueError(f"Item '{item.title}' is no longer in feed '{item.feed}'")
