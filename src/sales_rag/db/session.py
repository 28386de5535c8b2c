"""Engine and session-factory construction for the catalog database."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from sales_rag.config import settings
from sales_rag.db.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str | None = None, *, echo: bool = False) -> Engine:
    """Create an engine for *database_url* (defaults to ``settings.database_url``).

    SQLite connections get ``PRAGMA foreign_keys=ON`` so ``ON DELETE
    CASCADE`` behaves as it does on Postgres.
    """
    url = database_url or settings.database_url
    kwargs: dict = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory with explicit transaction control.

    ``expire_on_commit=False`` keeps returned rows readable after the
    repository closes its session.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all catalog tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Catalog schema ready on %s", engine.url.render_as_string(hide_password=True))
