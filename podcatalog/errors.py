"""Exception types raised by the store and the feed fetcher.

None of these are retried inside the package; callers decide on retry policy.
"""

from typing import Optional


class PodcatalogError(Exception):
    """Base class for every podcatalog error."""


class StoreUnavailable(PodcatalogError):
    """The database could not be opened or migrated."""


class ConstraintViolation(PodcatalogError):
    """A write would break a column constraint (unique url, required fields)."""


class NotFound(PodcatalogError):
    """An operation addressed a podcast id that does not exist."""

    def __init__(self, podcast_id: Optional[int]) -> None:
        self.podcast_id = podcast_id
        super().__init__(f"Podcast {podcast_id} not found")


class FetchFailed(PodcatalogError):
    """Transport failure or non-2xx response while fetching a feed.

    ``status_code`` is None for transport failures; the httpx error is then
    available as ``__cause__``.
    """

    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        message = f"Failed to fetch {url}"
        if status_code is not None:
            message += f": HTTP {status_code}"
        elif reason:
            message += f": {reason}"
        super().__init__(message)


class ParseFailed(PodcatalogError):
    """The fetched body is not a usable feed document."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to parse feed {url}: {reason}")
