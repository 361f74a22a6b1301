"""Non-table models exchanged by the podcast services."""

from dataclasses import dataclass

from sqlmodel import SQLModel

from podcatalog.schemas.podcasts import Podcast


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """A fetched (or revalidated) podcast record.

    ``not_modified`` is True when the server answered a conditional request
    with 304 and the body was not parsed.
    """

    podcast: Podcast
    not_modified: bool = False


class FeedSyncResult(SQLModel):
    """Counts and errors from one pass over the enabled feeds."""

    feeds_processed: int
    feeds_updated: int
    feeds_not_modified: int = 0
    errors: list[str]
