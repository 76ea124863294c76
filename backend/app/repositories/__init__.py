"""Repository construction.

Build one repository at process start and pass it to use cases and tasks.
"""
from __future__ import annotations

import logging

from ..config import Settings, get_settings
from .base import Repository
from .memory import InMemoryRepository

logger = logging.getLogger(__name__)


def build_repository(settings: Settings | None = None) -> Repository:
    """Return the repository selected by ``STORAGE_BACKEND``.

    The in-memory store starts empty unless ``SEED_SAMPLE_DATA`` is set; a
    database is never seeded here (see ``seed_data.py``).
    """
    settings = settings or get_settings()
    defaults = {
        "default_user_quota": settings.DEFAULT_USER_QUOTA,
        "activity_default_limit": settings.ACTIVITY_DEFAULT_LIMIT,
        "local_timezone": settings.LOCAL_TIMEZONE,
        "expiring_days": settings.EXPIRING_AGREEMENT_DAYS,
    }

    if settings.uses_database:
        from .sql import SqlAlchemyRepository

        logger.info("Using database repository")
        return SqlAlchemyRepository(**defaults)

    repo = InMemoryRepository(**defaults)
    if settings.SEED_SAMPLE_DATA:
        from ..sample_data import load_sample_data

        load_sample_data(repo)
    logger.info("Using in-memory repository")
    return repo


__all__ = ["Repository", "build_repository"]
