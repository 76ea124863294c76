"""Database engine and session factory."""
from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import settings


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, **overrides: Any):
    """Create an engine with pool settings appropriate for the backend."""
    engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_size"] = max(1, int(settings.DATABASE_POOL_SIZE))
        engine_kwargs["max_overflow"] = max(0, int(settings.DATABASE_MAX_OVERFLOW))
        engine_kwargs["pool_recycle"] = 1800
    engine_kwargs.update(overrides)
    return create_engine(database_url, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

