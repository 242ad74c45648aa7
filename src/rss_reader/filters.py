"""Evaluation of filtered folders over the item corpus."""

import locale
from collections.abc import Callable, Iterable

from rss_reader.models import (
    FeedItem,
    FilterDefinition,
    FilteredFolderContent,
    FilterType,
    SortOrder,
)

Predicate = Callable[[FeedItem, list[str]], bool]


class FilterValidationError(ValueError):
    """Raised when a filter definition cannot be accepted."""


def split_content(filter_content: str) -> list[str]:
    """Split a comma-separated folder/tag list. Empty input gives an empty list."""
    if not filter_content:
        return []
    return [part.strip() for part in filter_content.split(",")]


def _in_folders(item: FeedItem, folders: list[str]) -> bool:
    return not folders or item.folder in folders


def _is_read(item: FeedItem, folders: list[str]) -> bool:
    return item.read and _in_folders(item, folders)


def _is_unread(item: FeedItem, folders: list[str]) -> bool:
    return not item.read and _in_folders(item, folders)


def _is_favorite(item: FeedItem, folders: list[str]) -> bool:
    return item.favorite and _in_folders(item, folders)


def _has_tag(item: FeedItem, tags: list[str]) -> bool:
    return not item.tags.isdisjoint(tags)


PREDICATES: dict[FilterType, Predicate] = {
    FilterType.READ: _is_read,
    FilterType.UNREAD: _is_unread,
    FilterType.FAVORITES: _is_favorite,
    FilterType.TAGS: _has_tag,
}

_missing = set(FilterType) - set(PREDICATES)
if _missing:
    raise RuntimeError(f"No predicate for filter types: {sorted(t.value for t in _missing)}")


def matches(item: FeedItem, folder: FilterDefinition) -> bool:
    """Check whether an item belongs in a filtered folder."""
    return PREDICATES[folder.filter_type](item, split_content(folder.filter_content))


def _date_key(item: FeedItem) -> float:
    # Undated items sort as the oldest
    return item.pub_date.timestamp() if item.pub_date else float("-inf")


def _title_key(item: FeedItem) -> tuple[str, str]:
    # Case-insensitive first; the C locale alone would put "B" before "a"
    return (locale.strxfrm(item.title.casefold()), locale.strxfrm(item.title))


def sort_items(items: list[FeedItem], sort_order: SortOrder | None) -> list[FeedItem]:
    """Return ``items`` sorted per ``sort_order``; None leaves them as they are."""
    if sort_order == SortOrder.ALPHABET_NORMAL:
        return sorted(items, key=_title_key)
    if sort_order == SortOrder.ALPHABET_INVERTED:
        return sorted(items, key=_title_key, reverse=True)
    if sort_order == SortOrder.DATE_NEWEST:
        return sorted(items, key=_date_key, reverse=True)
    if sort_order == SortOrder.DATE_OLDEST:
        return sorted(items, key=_date_key)
    return list(items)


def evaluate(
    all_items: Iterable[FeedItem], filters: Iterable[FilterDefinition]
) -> list[FilteredFolderContent]:
    """Materialize every filtered folder, in definition order."""
    all_items = list(all_items)
    results = []
    for folder in filters:
        selected = [item for item in all_items if matches(item, folder)]
        results.append(
            FilteredFolderContent(filter=folder, items=sort_items(selected, folder.sort_order))
        )
    return results


def parse_filter_type(value: FilterType | str) -> FilterType:
    """Resolve a filter type by name, raising FilterValidationError if unknown."""
    if isinstance(value, FilterType):
        return value
    try:
        return FilterType(str(value).strip().upper())
    except ValueError:
        raise FilterValidationError(
            f"Unknown filter type '{value}'. Expected one of: "
            + ", ".join(t.value for t in FilterType)
        )


def parse_sort_order(value: SortOrder | str) -> SortOrder:
    """Resolve a sort order by name, raising FilterValidationError if unknown."""
    if isinstance(value, SortOrder):
        return value
    try:
        return SortOrder(str(value).strip().upper())
    except ValueError:
        raise FilterValidationError(
            f"Unknown sort order '{value}'. Expected one of: "
            + ", ".join(s.value for s in SortOrder)
        )


def build_filter(
    name: str,
    filter_type: FilterType | str,
    filter_content: str = "",
    sort_order: SortOrder | str = SortOrder.DATE_NEWEST,
    existing: Iterable[FilterDefinition] = (),
) -> FilterDefinition:
    """Validate user input for a filtered folder and build its definition.

    Args:
        name: Display name, unique among ``existing``.
        filter_type: A FilterType or its name.
        filter_content: Comma-separated folders, or tags for TAGS.
        sort_order: A SortOrder or its name.
        existing: Filters the new one must not collide with.

    Raises:
        FilterValidationError: On an empty or duplicate name, or an unknown
            filter type or sort order.
    """
    name = name.strip()
    if not name:
        raise FilterValidationError("Filter name cannot be empty")
    if any(folder.name == name for folder in existing):
        raise FilterValidationError(f"A filter named '{name}' already exists")

    return FilterDefinition(
        name=name,
        filter_type=parse_filter_type(filter_type),
        filter_content=",".join(split_content(filter_content)),
        sort_order=parse_sort_order(sort_order),
    )
