"""Data models for RSS Reader."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class FilterType(str, Enum):
    """Kind of predicate a filtered folder applies."""

    READ = "READ"
    UNREAD = "UNREAD"
    FAVORITES = "FAVORITES"
    TAGS = "TAGS"


class SortOrder(str, Enum):
    """Ordering of the items in a filtered folder."""

    ALPHABET_NORMAL = "ALPHABET_NORMAL"
    ALPHABET_INVERTED = "ALPHABET_INVERTED"
    DATE_NEWEST = "DATE_NEWEST"
    DATE_OLDEST = "DATE_OLDEST"


@dataclass
class FeedDefinition:
    """A configured RSS/Atom source. Identified by its name."""

    name: str
    url: str
    folder: str = ""


@dataclass
class FeedItem:
    """A single entry from a feed, plus the user's state for it."""

    title: str
    link: str
    content: str
    pub_date: datetime | None = None
    description: str | None = None
    creator: str | None = None
    enclosure: str | None = None
    feed: str = ""
    folder: str = ""
    read: bool = False
    favorite: bool = False
    tags: set[str] = field(default_factory=set)

    @property
    def identity(self) -> tuple[str, str, str]:
        """Key used to recognize the same entry across refreshes."""
        return (self.title, self.link, self.content)


@dataclass
class FeedContent:
    """Most recently fetched state of one feed."""

    name: str
    url: str = ""
    folder: str = ""
    title: str = ""
    description: str | None = None
    link: str | None = None
    image: str | None = None
    fetched_at: datetime | None = None
    items: list[FeedItem] = field(default_factory=list)


@dataclass
class FilterDefinition:
    """A user-authored filtered folder.

    ``filter_content`` is a comma-separated list of folder names, or of tag
    names when ``filter_type`` is TAGS. ``sort_order`` is None when the stored
    value was not recognized; such folders are left unsorted.
    """

    name: str
    filter_type: FilterType
    filter_content: str = ""
    sort_order: SortOrder | None = SortOrder.DATE_NEWEST


@dataclass
class FilteredFolderContent:
    """A filter paired with the items currently matching it."""

    filter: FilterDefinition
    items: list[FeedItem]


@dataclass
class Settings:
    """Persisted configuration and feed content."""

    feeds: list[FeedDefinition] = field(default_factory=list)
    items: dict[str, FeedContent] = field(default_factory=dict)
    filtered: list[FilterDefinition] = field(default_factory=list)
    update_time: int = 60

    def get_feed(self, name: str) -> FeedDefinition | None:
        for feed in self.feeds:
            if feed.name == name:
                return feed
        return None

    def get_filter(self, name: str) -> FilterDefinition | None:
        for folder in self.filtered:
            if folder.name == name:
                return folder
        return None
