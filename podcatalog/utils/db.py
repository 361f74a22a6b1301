"""SQLite engine and migration helpers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import event
from sqlalchemy.engine import Engine, create_engine
from sqlalchemy.pool import StaticPool

from podcatalog.errors import StoreUnavailable

MEMORY = ":memory:"
MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


@dataclass(frozen=True)
class ConnectionTarget:
    """Where the catalog lives: a database file, or memory when ``path`` is None."""

    path: Optional[Path] = None

    @classmethod
    def memory(cls) -> "ConnectionTarget":
        return cls(path=None)

    @classmethod
    def file(cls, path: Union[str, Path]) -> "ConnectionTarget":
        return cls(path=Path(path).expanduser())

    @classmethod
    def parse(cls, value: Union[str, Path]) -> "ConnectionTarget":
        """Accept ``":memory:"`` or a filesystem path."""
        if str(value) == MEMORY:
            return cls.memory()
        return cls.file(value)

    @property
    def is_memory(self) -> bool:
        return self.path is None

    def describe(self) -> str:
        return "sqlite (in-memory)" if self.path is None else f"sqlite:///{self.path}"


def _ensure_parent_dir(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreUnavailable(
            f"failed to create directory path: {path.parent}: {exc}"
        ) from exc


def _set_file_pragmas(dbapi_connection, connection_record) -> None:
    # WAL gives one writer alongside readers; FULL syncs on every commit.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
    finally:
        cursor.close()


def create_sqlite_engine(target: ConnectionTarget, echo: bool = False) -> Engine:
    """Build an engine for the target, creating the file's directory if needed."""
    if target.path is None:
        # A single shared connection; each new memory connection would be empty.
        return create_engine(
            "sqlite://",
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    _ensure_parent_dir(target.path)
    engine = create_engine(f"sqlite:///{target.path}", echo=echo)
    event.listen(engine, "connect", _set_file_pragmas)
    return engine


def alembic_config() -> Config:
    """Alembic configuration pointing at the packaged migration scripts."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return config


def upgrade_schema(engine: Engine, revision: str = "head") -> None:
    """Apply pending migrations up to ``revision`` on the engine's database."""
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, revision)


def current_revision(engine: Engine) -> Optional[str]:
    """Revision recorded in ``alembic_version``, or None for an empty database."""
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
