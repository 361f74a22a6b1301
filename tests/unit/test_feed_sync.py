"""Unit tests for the fetch-then-persist sync service."""

from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest

from podcatalog.errors import FetchFailed, ParseFailed
from podcatalog.schemas.podcasts import utcnow
from podcatalog.services.feed_fetcher import FeedFetcher
from podcatalog.services.feed_sync import refresh_enabled_feeds, sync_feed
from podcatalog.services.podcast_store import PodcastStore
from tests.factories import FEED_URL, make_feed_xml, make_podcast

MakeFetcher = Callable[..., FeedFetcher]


class FeedServer:
    """In-process stand-in for a set of feed URLs."""

    def __init__(self) -> None:
        self.responses: dict[str, tuple[int, bytes, dict[str, str]]] = {}
        self.requests: list[httpx.Request] = []

    def serve(
        self,
        url: str,
        status: int = 200,
        content: bytes = b"",
        etag: str | None = None,
    ) -> None:
        headers = {"ETag": etag} if etag else {}
        self.responses[url] = (status, content, headers)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) not in self.responses:
            return httpx.Response(404)
        status, content, headers = self.responses[str(request.url)]
        return httpx.Response(status, content=content, headers=headers)


@pytest.fixture()
def server() -> FeedServer:
    return FeedServer()


class TestSyncFeed:
    """Tests for sync_feed()."""

    def test_first_sync_creates_record(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """A new url is fetched and stored with an id."""
        server.serve(FEED_URL, content=make_feed_xml(), etag='"abc123"')

        outcome = sync_feed(store, make_fetcher(server), FEED_URL)

        assert outcome.not_modified is False
        assert outcome.podcast.id is not None
        stored = store.get(outcome.podcast.id)
        assert stored is not None
        assert stored.title == "Example Cast"
        assert stored.cache_key == '"abc123"'

    def test_refetch_keeps_id_and_takes_new_values(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """Fetching the same feed twice merges into a single stable record."""
        fetcher = make_fetcher(server)
        server.serve(FEED_URL, content=make_feed_xml(), etag='"v1"')
        first = sync_feed(store, fetcher, FEED_URL).podcast

        server.serve(
            FEED_URL,
            content=make_feed_xml(title="Example Cast 2", description="Updated"),
            etag='"v2"',
        )
        second = sync_feed(store, fetcher, FEED_URL).podcast

        assert second.id == first.id
        assert second.title == "Example Cast 2"
        assert second.description == "Updated"
        assert second.cache_key == '"v2"'
        assert second.last_checked >= first.last_checked
        assert len(store.list_podcasts()) == 1

    def test_http_error_writes_nothing(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """A 404 raises FetchFailed and leaves the store untouched."""
        with pytest.raises(FetchFailed) as excinfo:
            sync_feed(store, make_fetcher(server), FEED_URL)

        assert excinfo.value.status_code == 404
        assert store.list_podcasts() == []

    def test_parse_error_writes_nothing(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """A non-XML body raises ParseFailed and leaves the store untouched."""
        server.serve(FEED_URL, content=b"<<<garbage")

        with pytest.raises(ParseFailed):
            sync_feed(store, make_fetcher(server), FEED_URL)

        assert store.list_podcasts() == []

    def test_failed_refetch_keeps_previous_record(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """A failed sync of a known feed does not modify it."""
        existing = store.create_or_merge(make_podcast())
        server.serve(FEED_URL, status=500)

        with pytest.raises(FetchFailed):
            sync_feed(store, make_fetcher(server), FEED_URL)

        stored = store.get(existing.id)  # type: ignore[arg-type]
        assert stored is not None
        assert stored.model_dump() == existing.model_dump()

    def test_conditional_not_modified_advances_last_checked(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """A 304 keeps stored content and only bumps last_checked."""
        existing = store.create_or_merge(
            make_podcast(enabled=False, last_checked=datetime(2020, 1, 1))
        )
        server.serve(FEED_URL, status=304)

        outcome = sync_feed(store, make_fetcher(server), FEED_URL, conditional=True)

        assert outcome.not_modified is True
        assert server.requests[0].headers["If-None-Match"] == existing.cache_key
        assert outcome.podcast.id == existing.id
        assert outcome.podcast.title == existing.title
        assert outcome.podcast.enabled is False
        assert abs(utcnow() - outcome.podcast.last_checked) < timedelta(seconds=30)

    def test_conditional_for_unknown_url_is_a_plain_fetch(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """Without a stored record there is nothing to revalidate."""
        server.serve(FEED_URL, content=make_feed_xml())

        outcome = sync_feed(store, make_fetcher(server), FEED_URL, conditional=True)

        assert "If-None-Match" not in server.requests[0].headers
        assert outcome.podcast.id is not None

    def test_unconditional_sync_ignores_cache_key(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """Conditional requests are opt-in, never inferred from cache_key."""
        store.create_or_merge(make_podcast(cache_key='"v1"'))
        server.serve(FEED_URL, content=make_feed_xml())

        sync_feed(store, make_fetcher(server), FEED_URL)

        assert "If-None-Match" not in server.requests[0].headers


class TestRefreshEnabledFeeds:
    """Tests for refresh_enabled_feeds()."""

    def test_counts_updates_skips_disabled_and_collects_errors(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """One pass over enabled feeds; failures do not stop the pass."""
        ok_url = "https://a.example.com/feed.xml"
        broken_url = "https://b.example.com/feed.xml"
        disabled_url = "https://c.example.com/feed.xml"
        store.create_or_merge(make_podcast(url=ok_url))
        store.create_or_merge(make_podcast(url=broken_url))
        store.create_or_merge(make_podcast(url=disabled_url, enabled=False))
        server.serve(ok_url, content=make_feed_xml(title="Fresh A"))
        server.serve(broken_url, status=502)
        server.serve(disabled_url, content=make_feed_xml())

        result = refresh_enabled_feeds(store, make_fetcher(server))

        assert result.feeds_processed == 2
        assert result.feeds_updated == 1
        assert result.feeds_not_modified == 0
        assert len(result.errors) == 1
        assert broken_url in result.errors[0]
        assert [str(r.url) for r in server.requests] == [ok_url, broken_url]
        refreshed = store.get_by_url(ok_url)
        assert refreshed is not None
        assert refreshed.title == "Fresh A"

    def test_empty_body_is_collected_not_raised(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """An empty 200 reply fails that feed only."""
        empty_url = "https://a.example.com/feed.xml"
        ok_url = "https://b.example.com/feed.xml"
        store.create_or_merge(make_podcast(url=empty_url))
        store.create_or_merge(make_podcast(url=ok_url))
        server.serve(empty_url, content=b"")
        server.serve(ok_url, content=make_feed_xml(title="Fresh B"))

        result = refresh_enabled_feeds(store, make_fetcher(server))

        assert result.feeds_processed == 2
        assert result.feeds_updated == 1
        assert len(result.errors) == 1
        assert empty_url in result.errors[0]

    def test_skip_urls_are_not_fetched(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """Feeds already handled by the caller are left out of the pass."""
        other_url = "https://b.example.com/feed.xml"
        store.create_or_merge(make_podcast())
        store.create_or_merge(make_podcast(url=other_url))
        server.serve(FEED_URL, content=make_feed_xml())
        server.serve(other_url, content=make_feed_xml())

        result = refresh_enabled_feeds(
            store, make_fetcher(server), skip_urls={FEED_URL}
        )

        assert result.feeds_processed == 1
        assert [str(r.url) for r in server.requests] == [other_url]

    def test_conditional_refresh_counts_not_modified(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """304 replies are counted separately from updates."""
        store.create_or_merge(make_podcast(cache_key='"v1"'))
        server.serve(FEED_URL, status=304)

        result = refresh_enabled_feeds(store, make_fetcher(server), conditional=True)

        assert result.feeds_processed == 1
        assert result.feeds_updated == 0
        assert result.feeds_not_modified == 1
        assert result.errors == []

    def test_empty_catalog(
        self, store: PodcastStore, make_fetcher: MakeFetcher, server: FeedServer
    ) -> None:
        """Nothing stored means nothing fetched."""
        result = refresh_enabled_feeds(store, make_fetcher(server))

        assert result.feeds_processed == 0
        assert server.requests == []
