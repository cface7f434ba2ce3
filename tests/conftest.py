"""pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from typing import Iterable

# Settings are read at import time, so the test environment must be in place
# before anything from matchgate is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DAILY_LIKE_LIMIT"] = "10"
os.environ["QUOTA_UTC_OFFSET_HOURS"] = "9"
os.environ.pop("REDIS_URL", None)
os.environ.pop("SENTRY_DSN", None)

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from matchgate.services import build_gate  # noqa: E402
from matchgate.utils.database import Base, ProfileDB, create_store_engine, session_scope  # noqa: E402

USER_1 = "11111111-1111-4111-8111-111111111111"
USER_2 = "22222222-2222-4222-8222-222222222222"
USER_3 = "33333333-3333-4333-8333-333333333333"
MISSING_USER = "99999999-9999-4999-8999-999999999999"

# 12:00 in the UTC+9 reference zone
NOON_JST = datetime(2026, 10, 18, 3, 0, 0, tzinfo=timezone.utc)


def other_user(n: int) -> str:
    """Deterministic extra user ids for quota tests."""
    return f"aaaaaaaa-0000-4000-8000-{n:012d}"


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def add_profiles(factory: sessionmaker, profiles: Iterable[tuple]) -> None:
    with session_scope(factory, "seed_profiles") as session:
        session.add_all([ProfileDB(id=user_id, name=name) for user_id, name in profiles])


@pytest.fixture
def session_factory():
    """Fresh in-memory database with three named profiles."""
    engine = create_store_engine("sqlite://", timeout=5.0)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    add_profiles(factory, [(USER_1, "Aiko"), (USER_2, "Ben"), (USER_3, "Chiara")])
    yield factory
    engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOON_JST)


@pytest.fixture
def gate(session_factory, clock):
    return build_gate(session_factory, clock=clock)
