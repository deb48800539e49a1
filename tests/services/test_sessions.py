"""Tests for the session store."""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from itertools import count

import pytest

from atelier_mes.core.errors import UnknownSessionError
from atelier_mes.schemas.session import WorkerSession
from atelier_mes.services.sessions import SessionStore, get_session_store

LOGIN = datetime(2026, 10, 18, 6, 0, tzinfo=UTC)


def make_session(worker_id: int = 7, station_code: str = "CNC-01") -> WorkerSession:
    return WorkerSession(
        worker_id=worker_id,
        station_code=station_code,
        station_name=f"Station {station_code}",
        login_time=LOGIN,
    )


@pytest.fixture()
def sessions() -> SessionStore:
    return SessionStore()


def test_create_returns_distinct_tokens_for_identical_payloads(sessions) -> None:
    payload = make_session()
    first = sessions.create(payload)
    second = sessions.create(payload)

    assert first != second
    assert sessions.get(first) == payload
    assert sessions.get(second) == payload
    assert len(sessions) == 2


def test_delete_then_get_returns_none(sessions) -> None:
    token = sessions.create(make_session())
    assert sessions.delete(token) is True
    assert sessions.get(token) is None
    assert sessions.is_valid(token) is False
    assert sessions.delete(token) is False


def test_unknown_token_is_absent_not_an_error(sessions) -> None:
    assert sessions.get("nope") is None
    assert sessions.is_valid("nope") is False
    with pytest.raises(UnknownSessionError):
        sessions.require("nope")


def test_replace_only_overwrites_existing_tokens(sessions) -> None:
    token = sessions.create(make_session(station_code="CNC-01"))
    moved = make_session(station_code="LATHE-02")

    assert sessions.replace(token, moved) is True
    assert sessions.get(token).station_code == "LATHE-02"
    assert sessions.replace("unknown", moved) is False
    assert sessions.get("unknown") is None


def test_rotate_invalidates_previous_token(sessions) -> None:
    old = sessions.create(make_session(station_code="CNC-01"))
    new = sessions.rotate(old, make_session(station_code="LATHE-02"))

    assert new != old
    assert sessions.get(old) is None
    assert sessions.get(new).station_code == "LATHE-02"
    assert len(sessions) == 1


def test_rotate_unknown_token_stores_nothing(sessions) -> None:
    with pytest.raises(UnknownSessionError):
        sessions.rotate("missing", make_session())
    assert len(sessions) == 0


def test_list_and_clear_for_worker(sessions) -> None:
    sessions.create(make_session(worker_id=7, station_code="CNC-01"))
    sessions.create(make_session(worker_id=7, station_code="LATHE-02"))
    other = sessions.create(make_session(worker_id=8))

    assert {s.station_code for s in sessions.list_by_worker(7)} == {"CNC-01", "LATHE-02"}
    assert sessions.clear_for_worker(7) == 2
    assert sessions.list_by_worker(7) == []
    assert sessions.clear_for_worker(7) == 0
    assert sessions.is_valid(other)


def test_colliding_tokens_are_regenerated() -> None:
    tokens = iter(["same", "same", "same", "fresh"])
    sessions = SessionStore(token_factory=lambda: next(tokens))

    first = sessions.create(make_session())
    second = sessions.create(make_session())

    assert (first, second) == ("same", "fresh")


def test_concurrent_creates_and_clears_keep_map_consistent() -> None:
    counter = count()
    sessions = SessionStore(token_factory=lambda: f"t{next(counter)}")

    def churn(worker_id: int) -> int:
        for _ in range(20):
            sessions.create(make_session(worker_id=worker_id))
        return sessions.clear_for_worker(worker_id)

    with ThreadPoolExecutor(max_workers=8) as pool:
        removed = list(pool.map(churn, range(1, 17)))

    assert removed == [20] * 16
    assert len(sessions) == 0


def test_default_tokens_are_url_safe(sessions) -> None:
    token = sessions.create(make_session())
    assert len(token) >= 32
    assert all(ch.isalnum() or ch in "-_" for ch in token)


def test_process_wide_store_is_shared() -> None:
    assert get_session_store() is get_session_store()
