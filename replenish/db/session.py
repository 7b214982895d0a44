"""Engine and session factory for the configured database."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from replenish.core.config import get_settings


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite (dev, tests) is shared across threads."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True, pool_size=10, max_overflow=20)


_settings = get_settings()
engine = make_engine(_settings.database_url, echo=_settings.db_echo)

# Services commit explicitly, one transaction per operation
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
