"""Command-line runner for feed synchronization.

Fetches the given feed URLs into the catalog and, with ``--refresh``,
re-fetches every enabled feed already stored. Scheduling is left to cron or
whatever calls this.

Usage:
    python -m podcatalog.cli.sync_feeds https://example.com/feed.xml
    python -m podcatalog.cli.sync_feeds --database ~/pods.db --refresh --conditional

Exit codes:
    0 - Every feed synced
    1 - At least one feed failed, or the database could not be opened
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from podcatalog.config import settings
from podcatalog.errors import PodcatalogError, StoreUnavailable
from podcatalog.logging_config import setup_logging
from podcatalog.services.feed_fetcher import FeedFetcher
from podcatalog.services.feed_sync import refresh_enabled_feeds, sync_feed
from podcatalog.services.podcast_store import PodcastStore
from podcatalog.utils.db import ConnectionTarget

logger = logging.getLogger("sync_feeds")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sync_feeds",
        description="Fetch podcast feeds and store one record per feed URL.",
    )
    parser.add_argument("urls", nargs="*", help="Feed URLs to fetch")
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "-d",
        "--database",
        help="Database file path, or :memory: (default: per-user data directory)",
    )
    target.add_argument(
        "--memory",
        action="store_true",
        help="Use a throwaway in-memory database",
    )
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Also re-fetch every enabled feed already in the catalog",
    )
    parser.add_argument(
        "--conditional",
        action="store_true",
        help="Send stored ETags and skip parsing on 304 Not Modified",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def resolve_target(args: argparse.Namespace) -> ConnectionTarget:
    if args.memory:
        return ConnectionTarget.memory()
    if args.database:
        return ConnectionTarget.parse(args.database)
    return ConnectionTarget.file(settings.resolved_database_path)


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    fetcher: Optional[FeedFetcher] = None,
    configure_logging: bool = True,
) -> int:
    """Run a sync pass.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.urls and not args.refresh:
        parser.error("give at least one feed URL or --refresh")

    if configure_logging:
        setup_logging(level=args.log_level, sql_echo=settings.sql_echo)

    start_time = datetime.now(timezone.utc)
    target = resolve_target(args)

    try:
        store = PodcastStore.open(target)
    except StoreUnavailable as e:
        logger.error(f"Cannot open database: {e}")
        return 1

    own_fetcher = fetcher is None
    fetcher = fetcher or FeedFetcher()
    failures = 0
    attempted: set[str] = set()

    try:
        for url in args.urls:
            attempted.add(url)
            try:
                outcome = sync_feed(store, fetcher, url, conditional=args.conditional)
            except PodcatalogError as e:
                failures += 1
                logger.error(f"Sync failed: {e}")
                continue
            podcast = outcome.podcast
            state = "not modified" if outcome.not_modified else "updated"
            logger.info(f"[{podcast.id}] {podcast.title} ({state})")

        if args.refresh:
            result = refresh_enabled_feeds(
                store, fetcher, conditional=args.conditional, skip_urls=attempted
            )
            failures += len(result.errors)
    finally:
        if own_fetcher:
            fetcher.close()
        store.close()

    elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(f"Sync finished in {elapsed:.1f}s with {failures} failure(s)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
