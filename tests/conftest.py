"""Pytest fixtures: in-memory podcast store and fetchers on a mock transport."""

import logging
from typing import Callable, Iterator, Optional

import httpx
import pytest

from podcatalog.services.feed_fetcher import FeedFetcher
from podcatalog.services.podcast_store import PodcastStore
from podcatalog.utils.db import ConnectionTarget

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture()
def store() -> Iterator[PodcastStore]:
    """Provide a freshly migrated in-memory store for each test."""
    store = PodcastStore.open(ConnectionTarget.memory())
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def make_fetcher() -> Iterator[Callable[..., FeedFetcher]]:
    """Build fetchers whose HTTP traffic is answered by a handler function."""
    clients: list[httpx.Client] = []

    def _make(handler: Handler, logger: Optional[logging.Logger] = None) -> FeedFetcher:
        client = httpx.Client(
            transport=httpx.MockTransport(handler), follow_redirects=True
        )
        clients.append(client)
        return FeedFetcher(client, logger=logger)

    try:
        yield _make
    finally:
        for client in clients:
            client.close()
