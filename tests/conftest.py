# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from atelier_mes.db.session import Base
from atelier_mes.repositories.activity_repo import InMemoryActivityLogStore, SqlActivityLogStore
from atelier_mes.schemas.team import BreakReason
from atelier_mes.services.activity import ActivityStateMachine
from atelier_mes.services.break_reasons import BreakReasonCatalog

TEST_DB_URL = "sqlite://"
SHIFT_START = datetime(2026, 10, 18, 6, 0, tzinfo=UTC)


class FrozenClock:
    """Deterministic clock; advances by ``step`` after every reading."""

    def __init__(self, start: datetime, step: timedelta = timedelta(0)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(SHIFT_START, step=timedelta(seconds=1))


@pytest.fixture()
def break_reasons() -> BreakReasonCatalog:
    return BreakReasonCatalog(
        [
            BreakReason(code="1", name="Tea break"),
            BreakReason(code="12", name="Material wait"),
            BreakReason(code="73", name="Machine failure"),
        ]
    )


@pytest.fixture()
def store() -> InMemoryActivityLogStore:
    return InMemoryActivityLogStore()


@pytest.fixture()
def machine(
    store: InMemoryActivityLogStore, clock: FrozenClock, break_reasons: BreakReasonCatalog
) -> ActivityStateMachine:
    return ActivityStateMachine(store, clock=clock, break_reasons=break_reasons)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def sql_store(session_factory: sessionmaker[Session]) -> SqlActivityLogStore:
    return SqlActivityLogStore(session_factory)
