"""Podcast feed table."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Current UTC time without tzinfo, as stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


class Podcast(SQLModel, table=True):  # type: ignore[call-arg]
    """One catalogued feed, keyed by its URL.

    The store assigns ``id`` on first insert. Every successful fetch of the
    same URL merges into this row instead of creating a new one.
    """

    __tablename__ = "podcasts"
    __table_args__ = (UniqueConstraint("url", name="uq_podcasts_url"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    url: str
    description: Optional[str] = Field(default=None)
    enabled: bool = Field(default=True)
    # Naive UTC; the column stores no offset.
    last_checked: datetime = Field(default_factory=utcnow, sa_type=DateTime())
    image_url: Optional[str] = Field(default=None)
    cache_key: Optional[str] = Field(
        default=None,
        description="Opaque validator (ETag) from the most recent fetch",
    )


# Columns written by a full-record update (everything but the surrogate key).
RECORD_COLUMNS = (
    "title",
    "url",
    "description",
    "enabled",
    "last_checked",
    "image_url",
    "cache_key",
)

# Columns overwritten when a fetch merges into an existing url.
MERGE_COLUMNS = tuple(c for c in RECORD_COLUMNS if c != "url")


def record_values(podcast: Podcast) -> dict:
    """Column values for a write, excluding ``id``."""
    return {column: getattr(podcast, column) for column in RECORD_COLUMNS}


def missing_required_fields(podcast: Podcast) -> list[str]:
    """Names of required text fields that are absent or empty."""
    return [name for name in ("title", "url") if not getattr(podcast, name, None)]
