from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.repositories.memory import InMemoryRepository
from app.repositories.sql import SqlAlchemyRepository

# 10:00 in Asia/Jakarta (UTC+7).
START = datetime(2026, 3, 2, 3, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


def repo_kwargs(clock: FakeClock) -> dict:
    return {
        "clock": clock,
        "default_user_quota": 100,
        "activity_default_limit": 50,
        "local_timezone": "Asia/Jakarta",
        "expiring_days": 30,
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def sql_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def memory_repo(clock: FakeClock) -> InMemoryRepository:
    return InMemoryRepository(**repo_kwargs(clock))


@pytest.fixture(params=["memory", "sql"])
def repo(request, clock: FakeClock):
    """Runs the test once per repository implementation."""
    if request.param == "memory":
        return InMemoryRepository(**repo_kwargs(clock))
    factory = request.getfixturevalue("sql_session_factory")
    return SqlAlchemyRepository(factory, **repo_kwargs(clock))
