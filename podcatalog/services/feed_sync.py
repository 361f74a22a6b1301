"""Fetch-then-persist for podcast feeds.

Composes a :class:`FeedFetcher` and a :class:`PodcastStore`. A fetch or parse
failure aborts before any write, so a sync either persists a complete record
or changes nothing. Nothing is retried here.
"""

import logging
from typing import Collection

from podcatalog.errors import PodcatalogError
from podcatalog.models.podcasts import FeedSyncResult, FetchOutcome
from podcatalog.services.feed_fetcher import FeedFetcher
from podcatalog.services.podcast_store import PodcastStore

logger = logging.getLogger(__name__)


def sync_feed(
    store: PodcastStore,
    fetcher: FeedFetcher,
    url: str,
    *,
    conditional: bool = False,
) -> FetchOutcome:
    """Fetch one feed and merge it into the catalog.

    Args:
        store: Open podcast store
        fetcher: Feed fetcher
        url: Feed URL
        conditional: Revalidate with the stored cache key when there is one

    Returns:
        FetchOutcome whose ``podcast`` is the persisted record
    """
    stored = store.get_by_url(url) if conditional else None
    if stored is not None:
        outcome = fetcher.fetch_if_modified(stored)
    else:
        outcome = FetchOutcome(podcast=fetcher.fetch(url))

    persisted = store.create_or_merge(outcome.podcast)
    return FetchOutcome(podcast=persisted, not_modified=outcome.not_modified)


def refresh_enabled_feeds(
    store: PodcastStore,
    fetcher: FeedFetcher,
    *,
    conditional: bool = False,
    skip_urls: Collection[str] = (),
) -> FeedSyncResult:
    """Sync every enabled feed once, in id order.

    Feeds whose url is in ``skip_urls`` are left alone. Per-feed failures are
    logged and collected; the pass continues.
    """
    podcasts = [
        podcast
        for podcast in store.list_podcasts(enabled_only=True)
        if podcast.url not in skip_urls
    ]
    logger.info(f"Refreshing {len(podcasts)} enabled feed(s)")

    updated = 0
    not_modified = 0
    errors: list[str] = []

    for podcast in podcasts:
        try:
            outcome = sync_feed(store, fetcher, podcast.url, conditional=conditional)
        except PodcatalogError as e:
            error_msg = f"Failed to refresh {podcast.url}: {e}"
            logger.error(error_msg)
            errors.append(error_msg)
            continue

        if outcome.not_modified:
            not_modified += 1
        else:
            updated += 1

    logger.info(
        f"Feed refresh complete: {updated} updated, {not_modified} not modified, "
        f"{len(errors)} error(s)"
    )

    return FeedSyncResult(
        feeds_processed=len(podcasts),
        feeds_updated=updated,
        feeds_not_modified=not_modified,
        errors=errors,
    )
