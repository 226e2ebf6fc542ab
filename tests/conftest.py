"""Shared test fixtures for rss_startpage tests."""

import threading
from datetime import datetime, timezone

import pytest

from rss_startpage.models import FeedItem
from rss_startpage.storage import Storage

SAMPLE_RSS_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid isPermaLink="false">article-1</guid>
      <description>&lt;p&gt;Description of the &lt;b&gt;first&lt;/b&gt; article&lt;/p&gt;</description>
      <pubDate>Tue, 16 Jan 2024 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <description>Description of the second article</description>
      <pubDate>Mon, 15 Jan 2024 10:00:00 GMT</pubDate>
    </item>
    <item>
      <link>https://example.com/untitled</link>
      <guid>untitled</guid>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.org"/>
  <id>urn:uuid:feed</id>
  <updated>2024-01-14T10:00:00Z</updated>
  <entry>
    <title>Atom Entry 1</title>
    <link href="https://example.org/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <summary>Summary of entry 1</summary>
    <updated>2024-01-14T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_NOT_A_FEED = b"this is not xml at all"


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeFetcher:
    """Returns canned items (or raises canned errors) per source URL."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, source_url):
        with self._lock:
            self.calls.append(source_url)
        response = self.responses.get(source_url, [])
        if isinstance(response, Exception):
            raise response
        return list(response)


def make_item(item_id, source="Source A", published="2024-01-15T10:00:00+00:00", **extra):
    return FeedItem(
        id=str(item_id),
        title=extra.pop("title", f"Post {item_id}"),
        source=source,
        published=datetime.fromisoformat(published).astimezone(timezone.utc),
        link=extra.pop("link", f"https://example.com/{item_id}"),
        **extra,
    )


@pytest.fixture
def storage():
    """Storage over a fresh in-memory SQLite database."""
    return Storage.from_connection_string("sqlite:///:memory:")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_rss_xml():
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_not_a_feed():
    return SAMPLE_NOT_A_FEED
