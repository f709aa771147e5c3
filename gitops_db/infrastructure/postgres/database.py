#gitops_db\infrastructure\postgres\database.py

"""SQLAlchemy engine setup and connection pool lifecycle."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from gitops_db.core.errors import StoreUnavailable
from gitops_db.infrastructure.postgres.config import DatabaseSettings


logger = logging.getLogger(__name__)


# ============================================
# Base for ORM models
# ============================================
Base = declarative_base()


# ============================================
# Engine configuration
# ============================================
def create_db_engine(
    database_url: Optional[str] = None,
    settings: Optional[DatabaseSettings] = None,
) -> Engine:
    """Create SQLAlchemy engine with connection pooling."""

    if database_url is None:
        if settings is None:
            raise StoreUnavailable("no database url or settings supplied")
        database_url = settings.database_url

    url = make_url(database_url)
    kwargs = {"echo": settings.echo_sql if settings else False}

    if url.get_backend_name() != "sqlite":
        kwargs.update(
            pool_pre_ping=True,  # Verify connections before using
            pool_size=settings.pool_size if settings else 10,
            max_overflow=settings.max_overflow if settings else 20,
            pool_timeout=settings.pool_timeout if settings else 30,
            pool_recycle=settings.pool_recycle if settings else 3600,
        )
        if settings is not None:
            kwargs["connect_args"] = settings.connect_args()

    engine = create_engine(url, **kwargs)
    install_connect_hooks(engine)
    return engine


def install_connect_hooks(engine: Engine) -> None:
    """Per-dialect session settings applied to every new DBAPI connection."""

    backend = engine.dialect.name

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        if backend == "postgresql":
            cursor.execute("SET search_path TO public")
        elif backend == "sqlite":
            # Foreign keys (and ON DELETE CASCADE) are off by default in SQLite
            cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# ============================================
# Connection pool
# ============================================
class ConnectionPool:
    """
    Process-wide handle to the relational store.

    Constructed once, opened at startup, closed on shutdown and passed by
    reference into every query engine. Construction never touches the
    store; a pool that was never opened (or was closed) makes every query
    fail with StoreUnavailable.
    """

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        database_url: Optional[str] = None,
        engine: Optional[Engine] = None,
    ):
        self._settings = settings
        self._database_url = database_url
        self._engine = engine
        self._owns_engine = engine is None
        self._session_factory: Optional[sessionmaker] = None

    # -------------------------
    # LIFECYCLE
    # -------------------------

    def open(self) -> "ConnectionPool":
        if self._session_factory is not None:
            return self

        if self._engine is None:
            self._engine = create_db_engine(self._database_url, self._settings)

        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
            expire_on_commit=False
        )
        logger.info(f"Connection pool opened ({self._engine.dialect.name})")
        return self

    def close(self) -> None:
        if self._session_factory is None:
            return

        self._session_factory = None
        if self._owns_engine and self._engine is not None:
            self._engine.dispose()
            self._engine = None
        logger.info("Connection pool closed")

    def __enter__(self) -> "ConnectionPool":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------
    # ACCESS
    # -------------------------

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StoreUnavailable("database connection is nil")
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            raise StoreUnavailable("database connection is nil")
        return self._session_factory

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Explicit transaction scope for multi-statement sequences.

        Usage:
            with pool.transaction() as session:
                session.execute(...)
                session.execute(...)

        Commits on normal exit, rolls back on any exception.
        """
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> bool:
        """Round trip to the store; False when it is unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, StoreUnavailable) as e:
            logger.error(f"Database health check failed: {e}")
            return False


# ============================================
# Database initialization
# ============================================
def init_db(engine: Engine) -> None:
    """Create all tables (for testing only - use Alembic in production)."""
    # Register table definitions on Base.metadata
    from gitops_db.infrastructure.postgres import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_db(engine: Engine) -> None:
    """Drop all tables (for testing only)."""
    from gitops_db.infrastructure.postgres import models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
