"""Connection management for variant workspaces.

A workspace is either a directory (holding ``workspace.db``, SQLite) or
any SQLAlchemy URL.
"""

from pathlib import Path
from typing import Self

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from gtgather.core.store.schema import metadata

WORKSPACE_DB_NAME = "workspace.db"


def resolve_workspace_url(location: str | Path, *, create: bool = False) -> str:
    """Turn a workspace location into an SQLAlchemy URL.

    Args:
        location: Directory path or SQLAlchemy URL
        create: Create the directory if it does not exist (import path)

    Raises:
        FileNotFoundError: If the directory, or the database file inside it,
            is missing and ``create`` is False.
    """
    text = str(location)
    if "://" in text:
        return text
    directory = Path(text)
    if not directory.is_dir():
        if not create:
            raise FileNotFoundError(f"Workspace directory not found: {directory}")
        directory.mkdir(parents=True)
    database = directory / WORKSPACE_DB_NAME
    # SQLite would create the file on first connect
    if not create and not database.is_file():
        raise FileNotFoundError(f"Workspace database not found: {database}")
    return f"sqlite:///{database}"


class VariantWorkspace:
    """Workspace database connection manager.

    Only ``create=True`` (the import path) creates the directory, the
    database or its tables; opening for a query never writes.
    """

    def __init__(self, location: str | Path, *, create: bool = False) -> None:
        self.location = str(location)
        self.connection_string = resolve_workspace_url(location, create=create)
        self._engine: Engine | None = create_engine(self.connection_string, echo=False)
        if self.connection_string.startswith("sqlite"):
            VariantWorkspace._configure_sqlite(self._engine)
        if create:
            metadata.create_all(self._engine)

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        """Enable foreign keys and a busy timeout on every SQLite connection.

        Several participants may open the same workspace concurrently.
        """

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Workspace is closed")
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @classmethod
    def in_memory(cls) -> Self:
        """Create a workspace backed by a shared in-memory SQLite database.

        Uses StaticPool so every thread sees the same database.
        """
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls._configure_sqlite(engine)
        metadata.create_all(engine)
        instance = cls.__new__(cls)
        instance.location = ":memory:"
        instance.connection_string = "sqlite://"
        instance._engine = engine
        return instance
