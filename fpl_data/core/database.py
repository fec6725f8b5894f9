"""
Database configuration and engine creation for the local SQLite cache.
"""
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def is_in_memory(database_url: str) -> bool:
    """True when the URL names a private in-memory SQLite database."""
    return database_url in IN_MEMORY_URLS


def create_store_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create the engine backing a store.

    In-memory databases live on a single shared connection (StaticPool),
    otherwise every new connection would see an empty database. File
    databases run in WAL mode so readers are not blocked by the writer.

    Args:
        database_url: SQLAlchemy URL, defaults to settings.DATABASE_URL
        echo: Log SQL statements, defaults to settings.SQL_ECHO

    Returns:
        Configured engine
    """
    from fpl_data.core.config import settings

    url = database_url or settings.DATABASE_URL
    if echo is None:
        echo = settings.SQL_ECHO

    if is_in_memory(url):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    else:
        _ensure_parent_dir(url)
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,  # Verify connections before using
            echo=echo,
        )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not is_in_memory(url):
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay usable after commit."""
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the cache tables if they do not exist yet."""
    from fpl_data.models.records import Base
    Base.metadata.create_all(bind=engine, checkfirst=True)


def _ensure_parent_dir(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix):
        from pathlib import Path
        Path(url[len(prefix):]).parent.mkdir(parents=True, exist_ok=True)
