import pytest

from conftest import FakeFetcher, make_item
from rss_startpage.aggregator import FeedAggregator, dedupe_items, sort_items
from rss_startpage.cache import FeedCache
from rss_startpage.errors import NetworkError, ParseError
from rss_startpage.models import FeedPage

SOURCE_A = "https://a.example.com/rss"
SOURCE_B = "https://b.example.com/rss"


@pytest.fixture
def cache(storage, clock):
    return FeedCache(storage, clock=clock)


def _page(*sources):
    return FeedPage(id="feeds", name="Feeds", order=0, feed_sources=list(sources))


def test_dedupe_keeps_first_occurrence():
    items = [make_item(1, title="Post 1"), make_item(2), make_item(1, title="Post 1 Duplicate"), make_item(3)]

    deduplicated = dedupe_items(items)

    assert [item.id for item in deduplicated] == ["1", "2", "3"]
    assert deduplicated[0].title == "Post 1"


def test_sort_newest_first():
    items = [
        make_item("middle", published="2024-01-15T10:00:00+00:00"),
        make_item("newest", published="2024-01-16T10:00:00+00:00"),
        make_item("oldest", published="2024-01-14T10:00:00+00:00"),
    ]

    assert [item.id for item in sort_items(items)] == ["newest", "middle", "oldest"]


def test_sort_is_stable_for_equal_timestamps():
    items = [make_item("a"), make_item("b"), make_item("c")]

    assert [item.id for item in sort_items(items)] == ["a", "b", "c"]


def test_aggregate_merges_dedupes_and_sorts(cache):
    fetcher = FakeFetcher(
        {
            SOURCE_A: [
                make_item(1, source="A", published="2024-01-15T10:00:00+00:00"),
                make_item(2, source="A", published="2024-01-14T10:00:00+00:00"),
            ],
            SOURCE_B: [
                make_item(1, source="B", published="2024-01-15T10:00:00+00:00"),
                make_item(3, source="B", published="2024-01-16T10:00:00+00:00"),
            ],
        }
    )
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_A, SOURCE_B))

    assert [item.id for item in result.items] == ["3", "1", "2"]
    assert result.items[1].source == "A"
    assert result.errors == []
    assert sorted(fetcher.calls) == [SOURCE_A, SOURCE_B]


def test_source_order_decides_which_duplicate_survives(cache):
    fetcher = FakeFetcher(
        {
            SOURCE_A: [make_item(1, source="A")],
            SOURCE_B: [make_item(1, source="B")],
        }
    )
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_B, SOURCE_A))

    assert [item.source for item in result.items] == ["B"]


def test_second_run_within_ttl_is_a_pure_cache_hit(cache, clock):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1), make_item(2)], SOURCE_B: [make_item(3)]})
    aggregator = FeedAggregator(cache, fetcher)
    page = _page(SOURCE_A, SOURCE_B)

    first = aggregator.aggregate(page)
    calls_after_first = len(fetcher.calls)
    clock.advance(60_000)
    second = aggregator.aggregate(page)

    assert calls_after_first == 2
    assert len(fetcher.calls) == 2
    assert second.items == first.items
    assert second.fetched == []


def test_expired_cache_triggers_fetch(cache, clock):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1)]})
    aggregator = FeedAggregator(cache, fetcher)
    page = _page(SOURCE_A)

    aggregator.aggregate(page)
    clock.advance(1_801_000)
    result = aggregator.aggregate(page)

    assert fetcher.calls == [SOURCE_A, SOURCE_A]
    assert result.fetched == [SOURCE_A]


def test_failure_with_stale_cache_serves_stale_items(cache, clock, caplog):
    cache.put(SOURCE_A, [make_item(1, source="A")])
    clock.advance(1_801_000)
    fetcher = FakeFetcher({SOURCE_A: NetworkError("timeout")})
    aggregator = FeedAggregator(cache, fetcher)

    with caplog.at_level("WARNING"):
        result = aggregator.aggregate(_page(SOURCE_A))

    assert [item.id for item in result.items] == ["1"]
    assert len(result.errors) == 1
    assert result.errors[0].source_url == SOURCE_A
    assert result.errors[0].error_kind == "NetworkError"
    assert result.errors[0].stale is True
    assert result.stale_sources == [SOURCE_A]
    assert "Serving stale cache" in caplog.text


def test_failure_without_cache_contributes_nothing(cache):
    fetcher = FakeFetcher(
        {
            SOURCE_A: ParseError("not a feed"),
            SOURCE_B: [make_item(2, source="B")],
        }
    )
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_A, SOURCE_B))

    assert [item.id for item in result.items] == ["2"]
    assert [(e.source_url, e.error_kind, e.stale) for e in result.errors] == [
        (SOURCE_A, "ParseError", False)
    ]
    assert cache.get(SOURCE_A) is None


def test_unexpected_exception_is_reported_not_raised(cache):
    fetcher = FakeFetcher({SOURCE_A: RuntimeError("boom")})
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_A))

    assert result.items == []
    assert result.errors[0].error_kind == "ParseError"
    assert "boom" in result.errors[0].message


def test_all_sources_failing_still_returns_result(cache):
    fetcher = FakeFetcher({SOURCE_A: NetworkError("a"), SOURCE_B: NetworkError("b")})
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_A, SOURCE_B))

    assert result.items == []
    assert [error.source_url for error in result.errors] == [SOURCE_A, SOURCE_B]


def test_empty_page(cache):
    fetcher = FakeFetcher()

    result = FeedAggregator(cache, fetcher).aggregate(_page())

    assert result.items == []
    assert result.errors == []
    assert fetcher.calls == []


def test_refresh_invalidates_and_refetches(cache):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1)]})
    aggregator = FeedAggregator(cache, fetcher)
    page = _page(SOURCE_A)

    aggregator.aggregate(page)
    fetcher.responses[SOURCE_A] = [make_item(1), make_item(2, published="2024-02-01T00:00:00+00:00")]
    result = aggregator.refresh(page)

    assert fetcher.calls == [SOURCE_A, SOURCE_A]
    assert [item.id for item in result.items] == ["2", "1"]
    assert len(cache.get(SOURCE_A).items) == 2


def test_auto_refresh_only_runs_after_ttl(cache, clock):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1)]})
    aggregator = FeedAggregator(cache, fetcher)
    page = _page(SOURCE_A)

    assert aggregator.needs_refresh(page) is True
    assert aggregator.auto_refresh(page) is not None
    assert aggregator.needs_refresh(page) is False
    assert aggregator.auto_refresh(page) is None

    clock.advance(1_801_000)
    assert aggregator.auto_refresh(page) is not None
    assert fetcher.calls == [SOURCE_A, SOURCE_A]


def test_only_stale_sources_are_fetched(cache, clock):
    cache.put(SOURCE_A, [make_item(1)])
    fetcher = FakeFetcher({SOURCE_B: [make_item(2)]})
    aggregator = FeedAggregator(cache, fetcher)

    result = aggregator.aggregate(_page(SOURCE_A, SOURCE_B))

    assert fetcher.calls == [SOURCE_B]
    assert {item.id for item in result.items} == {"1", "2"}


def test_aggregate_all_is_per_page(cache):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1)], SOURCE_B: [make_item(2)]})
    aggregator = FeedAggregator(cache, fetcher)
    pages = [
        FeedPage(id="one", name="One", order=0, feed_sources=[SOURCE_A]),
        FeedPage(id="two", name="Two", order=1, feed_sources=[SOURCE_B]),
    ]

    results = aggregator.aggregate_all(pages)

    assert [item.id for item in results["one"].items] == ["1"]
    assert [item.id for item in results["two"].items] == ["2"]


def test_result_does_not_share_cache_lists(cache):
    fetcher = FakeFetcher({SOURCE_A: [make_item(1)]})
    aggregator = FeedAggregator(cache, fetcher)
    page = _page(SOURCE_A)

    result = aggregator.aggregate(page)
    result.items.clear()

    assert len(aggregator.aggregate(page).items) == 1
