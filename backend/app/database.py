from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings

settings = get_settings()


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine, applying SQLite specific tweaks when needed."""

    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        database = parsed.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        sqlite_engine = create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_foreign_keys(sqlite_engine)
        return sqlite_engine

    # Keep a small persistent pool and verify connections before handing them out
    return create_engine(
        url,
        echo=echo,
        future=True,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """SQLite only enforces ON DELETE CASCADE with the pragma switched on."""

    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = build_engine(settings.database_url, echo=settings.debug)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Context manager for short-lived database sessions.

    Use this outside of request handlers instead of Depends(get_db) so that
    a connection is only held for the duration of a single unit of work.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
