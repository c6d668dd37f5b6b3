"""SQLAlchemy engine construction."""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from mailsorter.config import Settings


def create_db_engine(settings: Settings | None = None, *, url: str | None = None) -> Engine:
    """Create an engine for the configured database URL.

    SQLite connections are shared between the event loop and worker threads,
    so the same-thread check is disabled for them.
    """
    from mailsorter.config import get_settings

    database_url = url or (settings or get_settings()).database_url
    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def check_connection(engine: Engine) -> None:
    """Verify the database is reachable."""

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
