"""Tests for the single-worker activity state machine."""

import time
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from atelier_mes.core.errors import (
    InvalidActivityRequestError,
    InvalidTransitionError,
    MissingBreakCodeError,
    UnknownBreakCodeError,
)
from atelier_mes.repositories.activity_repo import InMemoryActivityLogStore
from atelier_mes.schemas.activity import ActivityKind
from atelier_mes.services.activity import ActivityStateMachine

WO = 100
WORKER = 7
MACHINE = "CNC-01"


def test_start_appends_event_with_clock_timestamp(machine, store, clock) -> None:
    expected_time = clock.now
    event = machine.start(WO, WORKER, machine_code=MACHINE)

    assert event.kind is ActivityKind.START
    assert event.occurred_at == expected_time
    assert event.machine_code == MACHINE
    assert event.break_code is None
    assert store.latest_for(WO, WORKER) == event


def test_full_cycle(machine) -> None:
    machine.start(WO, WORKER, machine_code=MACHINE)
    stop = machine.stop(WO, WORKER, machine_code=MACHINE, break_code="73", notes=" spindle ")
    assert stop.break_code == "73"
    assert stop.notes == "spindle"
    assert machine.current_state(WO, WORKER).status == "paused"

    machine.resume(WO, WORKER, machine_code=MACHINE)
    assert machine.current_state(WO, WORKER).status == "working"

    machine.finish(WO, WORKER, machine_code=MACHINE)
    state = machine.current_state(WO, WORKER)
    assert state.can_start is True
    assert state.last_event.kind is ActivityKind.FINISH

    # A finished worker may start again on the same work order.
    machine.start(WO, WORKER, machine_code=MACHINE)
    assert [e.kind for e in machine.history(WO)] == [
        ActivityKind.START,
        ActivityKind.STOP,
        ActivityKind.RESUME,
        ActivityKind.FINISH,
        ActivityKind.START,
    ]


def test_starting_twice_is_an_invalid_transition(machine, store) -> None:
    machine.start(WO, WORKER, machine_code=MACHINE)
    with pytest.raises(InvalidTransitionError, match="Cannot start work"):
        machine.start(WO, WORKER, machine_code=MACHINE)
    assert len(store.all_for(WO)) == 1


@pytest.mark.parametrize(
    ("setup", "kind"),
    [
        ([], ActivityKind.STOP),
        ([], ActivityKind.RESUME),
        ([], ActivityKind.FINISH),
        ([ActivityKind.START], ActivityKind.RESUME),
        ([ActivityKind.START, ActivityKind.STOP], ActivityKind.STOP),
        ([ActivityKind.START, ActivityKind.STOP], ActivityKind.START),
        ([ActivityKind.START, ActivityKind.FINISH], ActivityKind.FINISH),
    ],
)
def test_illegal_transitions_are_rejected(machine, setup, kind) -> None:
    for step in setup:
        machine.apply(WO, WORKER, step, machine_code=MACHINE, break_code="1")
    with pytest.raises(InvalidTransitionError):
        machine.apply(WO, WORKER, kind, machine_code=MACHINE, break_code="1")


def test_finish_is_allowed_while_paused(machine) -> None:
    machine.start(WO, WORKER, machine_code=MACHINE)
    machine.stop(WO, WORKER, machine_code=MACHINE, break_code="1")
    event = machine.finish(WO, WORKER, machine_code=MACHINE)
    assert event.kind is ActivityKind.FINISH


@pytest.mark.parametrize("break_code", [None, "", "   "])
@pytest.mark.parametrize("started", [False, True])
def test_stop_without_break_code_fails_regardless_of_state(machine, store, break_code, started) -> None:
    if started:
        machine.start(WO, WORKER, machine_code=MACHINE)
    before = len(store.all_for(WO))
    with pytest.raises(MissingBreakCodeError):
        machine.stop(WO, WORKER, machine_code=MACHINE, break_code=break_code)
    assert len(store.all_for(WO)) == before


def test_unknown_break_code_is_rejected(machine) -> None:
    machine.start(WO, WORKER, machine_code=MACHINE)
    with pytest.raises(UnknownBreakCodeError):
        machine.stop(WO, WORKER, machine_code=MACHINE, break_code="999")


def test_break_codes_are_free_form_without_catalog(store, clock) -> None:
    machine = ActivityStateMachine(store, clock=clock)
    machine.start(WO, WORKER, machine_code=MACHINE)
    assert machine.stop(WO, WORKER, machine_code=MACHINE, break_code="999").break_code == "999"


def test_break_code_is_dropped_for_non_stop_actions(machine) -> None:
    event = machine.apply(WO, WORKER, ActivityKind.START, machine_code=MACHINE, break_code="1")
    assert event.break_code is None


@pytest.mark.parametrize(
    ("work_order_id", "worker_id", "machine_code"),
    [(0, WORKER, MACHINE), (-5, WORKER, MACHINE), (WO, 0, MACHINE), (WO, WORKER, "  ")],
)
def test_malformed_requests_are_rejected(machine, work_order_id, worker_id, machine_code) -> None:
    with pytest.raises(InvalidActivityRequestError):
        machine.start(work_order_id, worker_id, machine_code=machine_code)


def test_workers_are_tracked_independently(machine) -> None:
    machine.start(WO, 1, machine_code=MACHINE)
    machine.start(WO, 2, machine_code=MACHINE)
    machine.stop(WO, 1, machine_code=MACHINE, break_code="12")

    assert machine.current_state(WO, 1).status == "paused"
    assert machine.current_state(WO, 2).status == "working"
    assert machine.current_state(WO + 1, 1).can_start is True


def test_concurrent_starts_for_same_worker_serialize(clock) -> None:
    store = InMemoryActivityLogStore()
    machine = ActivityStateMachine(store, clock=clock)
    attempts = 16
    barrier = Barrier(attempts)

    def attempt(_: int) -> bool:
        barrier.wait()
        try:
            machine.start(WO, WORKER, machine_code=MACHINE)
        except InvalidTransitionError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    assert outcomes.count(True) == 1
    assert len(store.all_for_worker(WO, WORKER)) == 1


class SlowStore(InMemoryActivityLogStore):
    """Widens the window between reading the latest event and appending."""

    def latest_for(self, work_order_id, worker_id):
        latest = super().latest_for(work_order_id, worker_id)
        time.sleep(0.05)
        return latest


def test_separate_machines_over_one_store_serialize(clock) -> None:
    store = SlowStore()
    machines = [ActivityStateMachine(store, clock=clock) for _ in range(2)]
    barrier = Barrier(len(machines))

    def attempt(machine: ActivityStateMachine) -> bool:
        barrier.wait()
        try:
            machine.start(WO, WORKER, machine_code=MACHINE)
        except InvalidTransitionError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=len(machines)) as pool:
        outcomes = list(pool.map(attempt, machines))

    assert sorted(outcomes) == [False, True]
    assert len(store.all_for_worker(WO, WORKER)) == 1


def test_concurrent_starts_for_distinct_workers_all_succeed(clock) -> None:
    store = InMemoryActivityLogStore()
    machine = ActivityStateMachine(store, clock=clock)

    with ThreadPoolExecutor(max_workers=8) as pool:
        events = list(pool.map(lambda w: machine.start(WO, w, machine_code=MACHINE), range(1, 33)))

    assert len({event.id for event in events}) == 32
    assert len(store.all_for(WO)) == 32
    assert len(machine._locks) == 0


def test_works_against_sql_store(sql_store, clock) -> None:
    machine = ActivityStateMachine(sql_store, clock=clock)
    machine.start(WO, WORKER, machine_code=MACHINE)
    machine.stop(WO, WORKER, machine_code=MACHINE, break_code="1")

    state = machine.current_state(WO, WORKER)
    assert state.can_resume is True
    assert state.last_event.break_code == "1"
    with pytest.raises(InvalidTransitionError):
        machine.stop(WO, WORKER, machine_code=MACHINE, break_code="1")


def test_rejected_transition_is_logged(machine, caplog) -> None:
    with caplog.at_level("WARNING", logger="atelier_mes.services.activity"):
        with pytest.raises(InvalidTransitionError):
            machine.resume(WO, WORKER, machine_code=MACHINE)
    assert "Rejected RESUME" in caplog.text
