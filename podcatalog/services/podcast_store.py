"""Podcast record persistence.

One row per feed URL in a SQLite database whose schema is brought up to date
by Alembic when the store is opened. Writes are single statements inside a
committed transaction; SQLite's own locking is the only concurrency guard.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from alembic.script.revision import RevisionError
from alembic.util import CommandError
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from podcatalog.errors import ConstraintViolation, NotFound, StoreUnavailable
from podcatalog.schemas.podcasts import (
    MERGE_COLUMNS,
    Podcast,
    missing_required_fields,
    record_values,
)
from podcatalog.utils.db import (
    ConnectionTarget,
    create_sqlite_engine,
    current_revision,
    upgrade_schema,
)

_module_logger = logging.getLogger(__name__)


class PodcastStore:
    """Create, merge, update, delete and look up podcast records.

    Use :meth:`open` to get a store with an up-to-date schema. Records handed
    back are detached from any session and safe to keep around.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        target: Optional[ConnectionTarget] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.target = target
        self.logger = logger or _module_logger

    @classmethod
    def open(
        cls,
        target: ConnectionTarget,
        *,
        echo: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> PodcastStore:
        """Open the database and apply every pending migration.

        Raises:
            StoreUnavailable: the directory, file or schema cannot be used
        """
        log = logger or _module_logger
        log.info(f"Opening podcast store: {target.describe()}")

        engine: Optional[Engine] = None
        try:
            engine = create_sqlite_engine(target, echo=echo)
            upgrade_schema(engine)
            revision = current_revision(engine)
        except (
            SQLAlchemyError,
            sqlite3.Error,
            CommandError,
            RevisionError,
            OSError,
        ) as exc:
            if engine is not None:
                engine.dispose()
            log.error(f"Podcast store unavailable ({target.describe()}): {exc}")
            raise StoreUnavailable(
                f"cannot open or migrate {target.describe()}: {exc}"
            ) from exc

        log.debug(f"Podcast store schema at revision {revision}")
        return cls(engine, target=target, logger=log)

    def close(self) -> None:
        """Dispose of the engine and its connection pool."""
        self.engine.dispose()

    def __enter__(self) -> PodcastStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def _check_required(self, podcast: Podcast) -> None:
        missing = missing_required_fields(podcast)
        if missing:
            raise ConstraintViolation(
                f"Podcast {podcast.url or '<no url>'} is missing required "
                f"field(s): {', '.join(missing)}"
            )

    def create_or_merge(self, podcast: Podcast) -> Podcast:
        """Insert a new record, or merge into the existing one with the same url.

        On conflict every column except ``id`` and ``url`` takes the supplied
        value. The incoming ``id`` is ignored.

        Returns:
            The persisted row, with its store-assigned id
        """
        self._check_required(podcast)

        stmt = insert(Podcast).values(**record_values(podcast))
        stmt = stmt.on_conflict_do_update(
            index_elements=["url"],
            set_={column: stmt.excluded[column] for column in MERGE_COLUMNS},
        ).returning(Podcast)

        try:
            with self._session() as session, session.begin():
                stored = session.scalars(
                    stmt, execution_options={"populate_existing": True}
                ).one()
        except IntegrityError as exc:
            raise ConstraintViolation(
                f"Cannot store podcast {podcast.url}: {exc.orig}"
            ) from exc

        self.logger.debug(f"Stored podcast {stored.id} ({stored.url})")
        return stored

    def update(self, podcast: Podcast) -> Podcast:
        """Replace every column of the row with ``podcast.id``.

        Raises:
            NotFound: no row has that id
            ConstraintViolation: the new url already belongs to another row
        """
        if podcast.id is None:
            raise NotFound(None)
        self._check_required(podcast)

        stmt = (
            update(Podcast)
            .where(Podcast.id == podcast.id)  # type: ignore[arg-type]
            .values(**record_values(podcast))
            .returning(Podcast)
        )

        try:
            with self._session() as session, session.begin():
                stored = session.scalars(
                    stmt, execution_options={"populate_existing": True}
                ).one_or_none()
        except IntegrityError as exc:
            raise ConstraintViolation(
                f"Cannot update podcast {podcast.id} to {podcast.url}: {exc.orig}"
            ) from exc

        if stored is None:
            raise NotFound(podcast.id)

        self.logger.debug(f"Updated podcast {stored.id} ({stored.url})")
        return stored

    def delete(self, podcast: Podcast) -> None:
        """Remove the row with ``podcast.id``; absent rows are not an error."""
        stmt = delete(Podcast).where(Podcast.id == podcast.id)  # type: ignore[arg-type]
        with self._session() as session, session.begin():
            result = session.execute(stmt)

        if result.rowcount == 0:
            self.logger.debug(f"Podcast {podcast.id} already absent; nothing deleted")
        else:
            self.logger.debug(f"Deleted podcast {podcast.id}")

    def get(self, podcast_id: int) -> Optional[Podcast]:
        """Return the record with this id, or None."""
        with self._session() as session:
            return session.get(Podcast, podcast_id)

    def get_by_url(self, url: str) -> Optional[Podcast]:
        """Return the record for a feed url, or None."""
        stmt = select(Podcast).where(Podcast.url == url)  # type: ignore[arg-type]
        with self._session() as session:
            return session.scalars(stmt).one_or_none()

    def list_podcasts(self, enabled_only: bool = False) -> list[Podcast]:
        """All records ordered by id, optionally only the enabled ones."""
        stmt = select(Podcast).order_by(Podcast.id)  # type: ignore[arg-type]
        if enabled_only:
            stmt = stmt.where(Podcast.enabled == True)  # type: ignore[arg-type]  # noqa: E712
        with self._session() as session:
            return list(session.scalars(stmt).all())

    def set_enabled(self, podcast_id: int, enabled: bool) -> Podcast:
        """Enable or disable a feed without touching its other fields.

        Raises:
            NotFound: no row has that id
        """
        stmt = (
            update(Podcast)
            .where(Podcast.id == podcast_id)  # type: ignore[arg-type]
            .values(enabled=enabled)
            .returning(Podcast)
        )
        with self._session() as session, session.begin():
            stored = session.scalars(
                stmt, execution_options={"populate_existing": True}
            ).one_or_none()

        if stored is None:
            raise NotFound(podcast_id)

        self.logger.info(
            f"Podcast {podcast_id} {'enabled' if enabled else 'disabled'}"
        )
        return stored
