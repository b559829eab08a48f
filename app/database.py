"""Database bootstrap: engine selection, schema sync and session management."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from alembic.autogenerate import compare_metadata
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.errors import DatabaseNotReadyError

logger = logging.getLogger("usuarios_api")

_IN_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class DatabaseManager:
    """Owns the live engine.

    ``init()`` tries the primary engine first and falls back to an embedded
    SQLite file when the primary cannot be reached. Whichever engine wins, the
    rest of the application only sees this manager.
    """

    def __init__(
        self,
        primary_url: str,
        fallback_path: str,
        *,
        echo: bool = False,
        pool_size: int = 5,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
    ) -> None:
        self.primary_url = primary_url
        self.fallback_url = f"sqlite:///{Path(fallback_path).resolve()}"
        self.echo = echo
        self.pool_size = max(pool_size, 1)
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle

        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._models: dict[str, type[Base]] | None = None
        self._connected = False
        self._ready = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabaseManager":
        return cls(
            settings.PRIMARY_DATABASE_URL,
            settings.FALLBACK_DATABASE_PATH,
            echo=settings.DEBUG,
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )

    # --- Bootstrap ---

    def init(self) -> None:
        """Connect (primary, then fallback), sync the schema and signal readiness.

        A primary failure is logged and triggers the fallback. A fallback or
        schema sync failure propagates.
        """
        try:
            logger.info("Connecting to primary database %s", _display_url(self.primary_url))
            self._engine = self._connect(self.primary_url)
            logger.info("Connected to primary database (%s)", self.engine_kind)
        except SQLAlchemyError as exc:
            logger.warning("Primary database unavailable, using local SQLite: %s", exc)
            logger.info("Using SQLite database %s", _display_url(self.fallback_url))
            self._engine = self._connect(self.fallback_url)
            logger.info("Connected to SQLite database")

        self._connected = True
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

        try:
            self._setup_models()
        except Exception:
            logger.exception("Schema synchronization failed")
            self.close()
            raise

        self._ready.set()

    def _engine_options(self, url: str) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": True}
        if url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False, "timeout": 20}
            if url in _IN_MEMORY_URLS:
                options["poolclass"] = StaticPool
                return options
        elif url.startswith("mysql"):
            options["connect_args"] = {"connect_timeout": 3}

        options.update(
            pool_size=self.pool_size,
            max_overflow=0,
            pool_timeout=self.pool_timeout,
            pool_recycle=self.pool_recycle,
        )
        return options

    def _connect(self, url: str) -> Engine:
        engine = create_engine(url, **self._engine_options(url))
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError:
            engine.dispose()
            raise
        return engine

    def _setup_models(self) -> None:
        from app.models.user import User

        logger.info("Synchronizing models")
        self._sync_schema()
        self._models = {"User": User}
        logger.info("Models synchronized")

    def _sync_schema(self) -> None:
        """Create missing tables, then add what is missing from existing ones. Nothing is dropped."""
        if self._engine is None:
            raise DatabaseNotReadyError("La base de datos no está conectada")
        Base.metadata.create_all(bind=self._engine)

        with self._engine.begin() as connection:
            context = MigrationContext.configure(connection)
            operations = Operations(context)
            for diff in compare_metadata(context, Base.metadata):
                # column modifications come grouped in a list
                changes = diff if isinstance(diff, list) else [diff]
                for change in changes:
                    self._apply_schema_change(operations, change)

    def _apply_schema_change(self, operations: Operations, change: tuple) -> None:
        kind = change[0]

        if kind == "add_column":
            _, schema, table_name, column = change
            server_default = column.server_default.arg if column.server_default is not None else None
            operations.add_column(
                table_name,
                Column(
                    column.name,
                    column.type.copy(),
                    nullable=column.nullable if server_default is not None else True,
                    server_default=server_default,
                ),
                schema=schema,
            )
            logger.info("Added column %s.%s", table_name, column.name)

        elif kind == "add_index":
            index = change[1]
            operations.create_index(
                index.name,
                index.table.name,
                [col.name for col in index.columns],
                unique=bool(index.unique),
                schema=index.table.schema,
            )
            logger.info("Created index %s", index.name)

        elif kind in ("modify_type", "modify_nullable"):
            _, schema, table_name, column_name, existing, old_value, new_value = change
            if self.engine_kind == "sqlite":
                logger.warning("SQLite cannot alter %s.%s (%s), skipping", table_name, column_name, kind)
                return
            if kind == "modify_type":
                operations.alter_column(
                    table_name,
                    column_name,
                    schema=schema,
                    type_=new_value,
                    existing_type=old_value,
                    existing_nullable=existing.get("existing_nullable"),
                )
            else:
                operations.alter_column(
                    table_name,
                    column_name,
                    schema=schema,
                    nullable=new_value,
                    existing_type=existing.get("existing_type"),
                )
            logger.info("Altered column %s.%s (%s)", table_name, column_name, kind)

        elif kind.startswith("remove_"):
            logger.debug("Schema sync never drops objects, ignoring %s", kind)

        else:
            logger.debug("Schema sync ignoring %s", kind)

    # --- Accessors ---

    @property
    def engine_kind(self) -> str | None:
        return self._engine.dialect.name if self._engine is not None else None

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def wait_until_ready(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds for ``init()`` to finish. Returns readiness."""
        return self._ready.wait(timeout)

    def get_connection(self) -> Engine:
        if not self._connected or self._engine is None:
            raise DatabaseNotReadyError("La base de datos no está conectada")
        return self._engine

    def get_models(self) -> dict[str, type[Base]]:
        if self._models is None:
            raise DatabaseNotReadyError("Los modelos no han sido inicializados")
        return self._models

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session bound to the live engine. Rolls back on error."""
        if self._session_factory is None:
            raise DatabaseNotReadyError("La base de datos no está conectada")
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def health_check(self) -> dict[str, Any]:
        if self._engine is None:
            return {
                "status": "unhealthy",
                "engine": None,
                "connected": False,
                "error": "La base de datos no está conectada",
            }
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("Database health check failed: %s", exc)
            return {"status": "unhealthy", "engine": self.engine_kind, "connected": False, "error": str(exc)}
        return {"status": "healthy", "engine": self.engine_kind, "connected": True}

    def close(self) -> None:
        """Release the engine. Safe to call more than once."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._models = None
        self._connected = False
        self._ready.clear()
        logger.info("Database connection closed")


def _display_url(url: str) -> str:
    return make_url(url).render_as_string(hide_password=True)
