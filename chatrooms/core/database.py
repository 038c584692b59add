# chatrooms/core/database.py

from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from chatrooms.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(url: str) -> Engine:
    """
    Create the SQLAlchemy engine for the persistence store.

    SQLite needs two tweaks: connections are shared with the threadpool
    FastAPI runs sync dependencies in, and an in-memory database must live
    on a single connection or every session would see an empty schema.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db() -> None:
    """Create all tables that don't exist yet."""
    # Register the mapped classes on Base.metadata
    from chatrooms.models import orm  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("✓ Database ready (%s)", engine.url.render_as_string(hide_password=True))


def get_db() -> Iterator[Session]:
    """
    Request-scoped session dependency.

    Usage:
        @router.get("/things")
        def list_things(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
