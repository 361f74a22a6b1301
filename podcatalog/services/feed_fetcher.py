"""Podcast feed fetching.

Turns one feed URL into one normalized :class:`Podcast` record, or raises
``FetchFailed`` / ``ParseFailed``. The fetcher never touches the store; the
caller persists what it returns.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
from typing import Any, Optional

import feedparser  # type: ignore[import-untyped]
import httpx

from podcatalog.config import settings
from podcatalog.errors import FetchFailed, ParseFailed
from podcatalog.models.podcasts import FetchOutcome
from podcatalog.schemas.podcasts import RECORD_COLUMNS, Podcast, utcnow

_module_logger = logging.getLogger(__name__)

ITUNES_NAMESPACE = "http://www.itunes.com/dtds/podcast-1.0.dtd"

# Parser complaints that do not mean the document is malformed.
_BENIGN_BOZO_EXCEPTIONS = (
    feedparser.CharacterEncodingOverride,
    feedparser.NonXMLContentType,
)


def default_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.http_connect_timeout,
        read=settings.http_read_timeout,
        write=5.0,
        pool=5.0,
    )


class FeedFetcher:
    """Blocking HTTP fetcher for podcast feeds.

    Pass ``client`` to control transport (tests use ``httpx.MockTransport``);
    otherwise the fetcher builds and owns its own ``httpx.Client``.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        *,
        timeout: Optional[httpx.Timeout] = None,
        user_agent: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or _module_logger
        self._owns_client = client is None
        self._client = client or httpx.Client(
            headers={"User-Agent": user_agent or settings.user_agent},
            timeout=timeout or default_timeout(),
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> FeedFetcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fetch(self, url: str) -> Podcast:
        """Fetch and normalize a feed.

        Args:
            url: Feed URL; becomes the record's identity verbatim

        Returns:
            Unsaved Podcast with ``id`` unset

        Raises:
            FetchFailed: transport error or status outside 200-299
            ParseFailed: body is not a feed, or the channel has no title
        """
        response = self._get(url)
        return self._normalize(url, response)

    def fetch_if_modified(self, stored: Podcast) -> FetchOutcome:
        """Revalidate a stored feed with its cache key.

        Sends ``If-None-Match`` when ``stored.cache_key`` is set. A 304 reply
        skips parsing and returns a copy of ``stored`` with a fresh
        ``last_checked``; anything else is handled exactly like :meth:`fetch`.
        """
        if not stored.cache_key:
            self.logger.debug(f"No cache key for {stored.url}; doing a full fetch")
            return FetchOutcome(podcast=self.fetch(stored.url))

        response = self._get(stored.url, headers={"If-None-Match": stored.cache_key})
        if response.status_code == httpx.codes.NOT_MODIFIED:
            self.logger.info(f"Feed not modified: {stored.url}")
            unchanged = Podcast(
                id=stored.id,
                **{column: getattr(stored, column) for column in RECORD_COLUMNS},
            )
            unchanged.last_checked = utcnow()
            unchanged.cache_key = response.headers.get("etag") or stored.cache_key
            return FetchOutcome(podcast=unchanged, not_modified=True)

        return FetchOutcome(podcast=self._normalize(stored.url, response))

    def _get(self, url: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        try:
            response = self._client.get(url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self.logger.warning(f"Failed to fetch feed {url}: {exc}")
            raise FetchFailed(url, reason=str(exc) or type(exc).__name__) from exc

        self.logger.debug(f"GET {url} -> {response.status_code}")
        return response

    def _normalize(self, url: str, response: httpx.Response) -> Podcast:
        if not response.is_success:
            self.logger.warning(f"Failed to fetch feed {url}: HTTP {response.status_code}")
            raise FetchFailed(url, status_code=response.status_code)

        channel = parse_channel(url, response.content)
        podcast = Podcast(
            title=channel["title"],
            url=url,
            description=channel.get("description") or None,
            enabled=True,
            last_checked=utcnow(),
            image_url=_extract_itunes_artwork(response.content),
            cache_key=response.headers.get("etag"),
        )
        self.logger.info(f"Fetched feed {url}: {podcast.title}")
        return podcast


def parse_channel(url: str, content: bytes) -> dict[str, Any]:
    """Parse a feed body and return its channel-level fields.

    Raises:
        ParseFailed: malformed XML, unrecognized format or missing title
    """
    # A stream keeps feedparser from treating short bodies as file names
    parsed = feedparser.parse(io.BytesIO(content))

    if parsed.get("bozo") and not isinstance(
        parsed.get("bozo_exception"), _BENIGN_BOZO_EXCEPTIONS
    ):
        raise ParseFailed(url, f"not a well-formed feed: {parsed.bozo_exception}")
    if not parsed.get("version"):
        raise ParseFailed(url, "unrecognized feed format")

    channel = parsed.feed
    title = (channel.get("title") or "").strip()
    if not title:
        raise ParseFailed(url, "channel has no title")
    channel["title"] = title
    return channel


def _extract_itunes_artwork(content: bytes) -> Optional[str]:
    """Artwork URL from the channel's itunes:image, if any.

    feedparser folds a plain RSS ``<image>`` into the same ``image.href`` key,
    so the raw document is read instead.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return None

    image = root.find(f"channel/{{{ITUNES_NAMESPACE}}}image")
    if image is None:
        return None
    href = (image.get("href") or "").strip()
    return href or None
