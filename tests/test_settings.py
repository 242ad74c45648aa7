"""Tests for the settings schema and legacy data migration."""

import copy
from datetime import datetime, timezone

from conftest import make_content, make_item

from rss_reader.models import FeedDefinition, FilterDefinition, FilterType, Settings, SortOrder
from rss_reader.settings import (
    migrate_legacy,
    settings_from_dict,
    settings_to_dict,
)


def legacy_blob():
    return {
        "feeds": [{"name": "Tech Feed", "url": "https://example.com/feed.xml", "folder": "Tech"}],
        "items": {
            "0": {
                "name": "Tech Feed",
                "folder": "Tech",
                "items": [
                    {"title": "X", "link": "l", "content": "c", "read": False},
                    {"title": "Y", "link": "l2", "content": "c2", "read": False},
                ],
            }
        },
        "read": {"items": [{"title": "X", "link": "l", "content": "c"}]},
        "favorites": {"items": [{"title": "Y", "link": "l2", "content": "c2"}]},
        "filtered": [],
        "updateTime": 30,
    }


def test_migration_sets_flags_and_drops_legacy_keys():
    blob = legacy_blob()

    assert migrate_legacy(blob) is True

    x, y = blob["items"]["0"]["items"]
    assert x["read"] is True
    assert y.get("favorite") is True
    assert y["read"] is False
    assert "read" not in blob
    assert "favorites" not in blob


def test_migration_is_idempotent():
    blob = legacy_blob()
    migrate_legacy(blob)
    migrated = copy.deepcopy(blob)

    assert migrate_legacy(blob) is False
    assert blob == migrated


def test_migration_ignores_entries_without_a_match():
    blob = legacy_blob()
    blob["read"]["items"].append({"title": "Gone", "link": "x", "content": "y"})

    assert migrate_legacy(blob) is True
    assert [i["read"] for i in blob["items"]["0"]["items"]] == [True, False]


def test_migration_requires_all_three_fields_to_match():
    blob = legacy_blob()
    blob["read"]["items"] = [{"title": "X", "link": "l", "content": "different"}]

    migrate_legacy(blob)

    assert blob["items"]["0"]["items"][0]["read"] is False


def test_migration_with_only_read_list():
    blob = legacy_blob()
    del blob["favorites"]

    assert migrate_legacy(blob) is True
    assert blob["items"]["0"]["items"][0]["read"] is True


def test_settings_round_trip():
    settings = Settings(
        feeds=[FeedDefinition("Tech Feed", "https://example.com/feed.xml", "Tech")],
        items={
            "Tech Feed": make_content(
                "Tech Feed",
                [
                    make_item(
                        "A",
                        pub_date=datetime(2026, 2, 13, 10, 0, tzinfo=timezone.utc),
                        read=True,
                        tags={"b", "a"},
                    ),
                    make_item("B", favorite=True),
                ],
            )
        },
        filtered=[
            FilterDefinition("Unread tech", FilterType.UNREAD, "Tech", SortOrder.DATE_OLDEST)
        ],
        update_time=15,
    )

    blob = settings_to_dict(settings)

    assert blob["items"]["Tech Feed"]["items"][0]["tags"] == ["a", "b"]
    assert blob["filtered"][0]["filterType"] == "UNREAD"
    assert settings_from_dict(blob) == settings


def test_settings_defaults_for_empty_blob():
    settings = settings_from_dict({}, update_time=45)

    assert settings == Settings(update_time=45)


def test_items_inherit_feed_and_folder_from_content():
    blob = {"items": {"Tech Feed": {"name": "Tech Feed", "folder": "Tech", "items": [{"title": "A"}]}}}

    item = settings_from_dict(blob).items["Tech Feed"].items[0]

    assert item.feed == "Tech Feed"
    assert item.folder == "Tech"
    assert item.tags == set()


def test_unknown_filter_type_is_skipped_on_load():
    blob = {
        "filtered": [
            {"name": "Broken", "filterType": "STARRED", "filterContent": "", "sortOrder": "DATE_NEWEST"},
            {"name": "Read", "filterType": "READ", "filterContent": "", "sortOrder": "DATE_NEWEST"},
        ]
    }

    settings = settings_from_dict(blob)

    assert [f.name for f in settings.filtered] == ["Read"]


def test_entries_without_a_name_are_skipped_on_load():
    blob = {
        "feeds": [
            {"url": "https://example.com/anon.xml", "folder": "Tech"},
            {"name": "", "url": "https://example.com/empty.xml"},
            {"name": "Tech Feed", "url": "https://example.com/tech.xml", "folder": "Tech"},
        ],
        "filtered": [
            {"filterType": "READ", "filterContent": "", "sortOrder": "DATE_NEWEST"},
            {"name": "Read", "filterType": "READ", "filterContent": "", "sortOrder": "DATE_NEWEST"},
        ],
    }

    settings = settings_from_dict(blob)

    assert [f.name for f in settings.feeds] == ["Tech Feed"]
    assert [f.name for f in settings.filtered] == ["Read"]


def test_unknown_sort_order_loads_unsorted():
    blob = {"filtered": [{"name": "Read", "filterType": "READ", "sortOrder": "SHUFFLE"}]}

    [folder] = settings_from_dict(blob).filtered

    assert folder.sort_order is None


def test_rfc822_pub_dates_from_old_files_are_parsed():
    blob = {"items": {"f": {"name": "f", "items": [{"title": "A", "pubDate": "Thu, 13 Feb 2026 10:00:00 GMT"}]}}}

    item = settings_from_dict(blob).items["f"].items[0]

    assert item.pub_date == datetime(2026, 2, 13, 10, 0, tzinfo=timezone.utc)
