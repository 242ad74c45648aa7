"""Shared test fixtures for RSS Reader tests."""

from datetime import datetime, timezone

import pytest

from rss_reader.models import FeedContent, FeedDefinition, FeedItem
from rss_reader.reader import RssReader
from rss_reader.storage import SettingsStorage


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <description>Description of the first article</description>
      <pubDate>Thu, 13 Feb 2026 10:00:00 GMT</pubDate>
      <enclosure url="https://example.com/episode-1.mp3" length="1234" type="audio/mpeg"/>
    </item>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <description>Description of the second article</description>
      <pubDate>Thu, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.com"/>
  <subtitle>A test Atom feed</subtitle>
  <entry>
    <title>Atom Entry 1</title>
    <link href="https://example.com/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <summary>Summary of entry 1</summary>
    <content type="html">&lt;p&gt;Full body of entry 1&lt;/p&gt;</content>
    <author><name>Jane Doe</name></author>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <body>This is not a feed</body>
</html>"""


def make_item(
    title: str,
    link: str | None = None,
    content: str | None = None,
    feed: str = "Tech Feed",
    folder: str = "Tech",
    pub_date: datetime | None = None,
    **state,
) -> FeedItem:
    """Build a FeedItem with predictable defaults derived from the title."""
    return FeedItem(
        title=title,
        link=link if link is not None else f"https://example.com/{title.lower()}",
        content=content if content is not None else f"Body of {title}",
        pub_date=pub_date,
        feed=feed,
        folder=folder,
        **state,
    )


def make_content(name: str, items: list[FeedItem], folder: str = "Tech") -> FeedContent:
    return FeedContent(
        name=name,
        url=f"https://example.com/{name}.xml",
        folder=folder,
        title=name,
        fetched_at=datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc),
        items=items,
    )


class FakeFetcher:
    """Stand-in for fetch_feed serving canned contents per feed name."""

    def __init__(self):
        self.contents: dict[str, list[FeedItem]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def __call__(self, definition: FeedDefinition) -> FeedContent:
        self.calls.append(definition.name)
        if definition.name in self.errors:
            raise self.errors[definition.name]
        items = [
            FeedItem(
                title=item.title,
                link=item.link,
                content=item.content,
                pub_date=item.pub_date,
                feed=definition.name,
                folder=definition.folder,
            )
            for item in self.contents.get(definition.name, [])
        ]
        return FeedContent(
            name=definition.name,
            url=definition.url,
            folder=definition.folder,
            title=definition.name,
            items=items,
        )


@pytest.fixture
def tmp_data_path(tmp_path):
    """Provide a temporary settings file path."""
    return tmp_path / "data.json"


@pytest.fixture
def storage(tmp_data_path):
    return SettingsStorage(tmp_data_path)


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def reader(storage, fetcher):
    """A loaded reader backed by a temporary file and the fake fetcher."""
    reader = RssReader(storage, fetcher=fetcher)
    reader.load()
    return reader


@pytest.fixture
def sample_rss_xml():
    """Sample valid RSS 2.0 XML."""
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    """Sample valid Atom XML."""
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_not_a_feed_xml():
    """Sample XML that is not a feed."""
    return SAMPLE_NOT_A_FEED_XML
