"""Worker activity state machine.

Transitions are validated against the state derived from the activity log and
appended as new events. The check and the append for one (work order, worker)
pair run under that pair's lock, so concurrent requests for the same worker
serialize while other workers proceed independently.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable

from atelier_mes.core.errors import (
    InvalidActivityRequestError,
    InvalidTransitionError,
    MissingBreakCodeError,
    UnknownBreakCodeError,
)
from atelier_mes.db.time import Clock, utcnow
from atelier_mes.repositories.activity_repo import ActivityLogStore
from atelier_mes.schemas.activity import ActivityEvent, ActivityKind, WorkerActivityState
from atelier_mes.services.activity_state import resolve_state
from atelier_mes.services.break_reasons import BreakReasonCatalog
from atelier_mes.services.locks import KeyedLockTable

__all__ = ["ActivityStateMachine"]

logger = logging.getLogger(__name__)

_REJECTION_MESSAGES = {
    ActivityKind.START: (
        "Cannot start work. Work is already in progress or paused. "
        "Use resume to continue or finish to complete current work."
    ),
    ActivityKind.STOP: "Cannot stop work. Work must be started or resumed before stopping.",
    ActivityKind.RESUME: "Cannot resume work. Work must be paused before resuming.",
    ActivityKind.FINISH: "Cannot finish work. Work must be started before finishing.",
}


# Shared by every state machine in the process so that two instances over one
# store still serialize the same (work order, worker) pair.
_WORKER_LOCKS = KeyedLockTable()


def _new_event_id() -> str:
    return str(uuid.uuid4())


class ActivityStateMachine:
    """Apply start/stop/resume/finish actions for a single worker."""

    def __init__(
        self,
        store: ActivityLogStore,
        *,
        clock: Clock = utcnow,
        id_factory: Callable[[], str] = _new_event_id,
        break_reasons: BreakReasonCatalog | None = None,
        locks: KeyedLockTable | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            store: Activity log the events are read from and appended to.
            clock: Source of event timestamps.
            id_factory: Generator of unique event identifiers.
            break_reasons: Optional catalog; when given, stop codes must exist in it.
            locks: Per-(work order, worker) lock table; defaults to the process-wide one.
        """
        self.store = store
        self._clock = clock
        self._id_factory = id_factory
        self._break_reasons = break_reasons
        self._locks = locks if locks is not None else _WORKER_LOCKS

    def current_state(self, work_order_id: int, worker_id: int) -> WorkerActivityState:
        """Return the worker's derived state for display."""
        self._validate_ids(work_order_id, worker_id)
        return resolve_state(self.store.latest_for(work_order_id, worker_id))

    def history(self, work_order_id: int) -> list[ActivityEvent]:
        """Return every event recorded against a work order, oldest first."""
        if work_order_id <= 0:
            raise InvalidActivityRequestError("Invalid work order id")
        return self.store.all_for(work_order_id)

    def apply(
        self,
        work_order_id: int,
        worker_id: int,
        kind: ActivityKind,
        *,
        machine_code: str,
        break_code: str | None = None,
        notes: str | None = None,
    ) -> ActivityEvent:
        """Validate ``kind`` against the worker's state and append it.

        Raises:
            InvalidActivityRequestError: for non-positive ids or an empty machine code.
            MissingBreakCodeError: for a STOP without a break code, whatever the state.
            UnknownBreakCodeError: for a STOP whose code is not in the catalog.
            InvalidTransitionError: if the current state does not permit ``kind``.
        """
        self._validate_ids(work_order_id, worker_id)
        machine_code = (machine_code or "").strip()
        if not machine_code:
            raise InvalidActivityRequestError("Machine code is required")

        kind = ActivityKind(kind)
        if kind is ActivityKind.STOP:
            break_code = (break_code or "").strip()
            if not break_code:
                raise MissingBreakCodeError("Break reason code is required when stopping work")
            if self._break_reasons is not None and break_code not in self._break_reasons:
                raise UnknownBreakCodeError(f"Invalid break reason code: {break_code}")
        else:
            break_code = None
        notes = (notes or "").strip() or None

        with self._locks.hold((work_order_id, worker_id)):
            state = resolve_state(self.store.latest_for(work_order_id, worker_id))
            if not state.permits(kind):
                logger.warning(
                    "Rejected %s for worker %s on work order %s (status %s)",
                    kind.name,
                    worker_id,
                    work_order_id,
                    state.status,
                )
                raise InvalidTransitionError(_REJECTION_MESSAGES[kind])

            event = ActivityEvent(
                id=self._id_factory(),
                work_order_id=work_order_id,
                machine_code=machine_code,
                worker_id=worker_id,
                kind=kind,
                occurred_at=self._clock(),
                break_code=break_code,
                notes=notes,
            )
            self.store.append(event)

        logger.info(
            "Worker %s %s on work order %s at %s",
            worker_id,
            kind.name,
            work_order_id,
            machine_code,
        )
        return event

    def start(self, work_order_id: int, worker_id: int, *, machine_code: str) -> ActivityEvent:
        return self.apply(work_order_id, worker_id, ActivityKind.START, machine_code=machine_code)

    def stop(
        self,
        work_order_id: int,
        worker_id: int,
        *,
        machine_code: str,
        break_code: str | None,
        notes: str | None = None,
    ) -> ActivityEvent:
        return self.apply(
            work_order_id,
            worker_id,
            ActivityKind.STOP,
            machine_code=machine_code,
            break_code=break_code,
            notes=notes,
        )

    def resume(
        self, work_order_id: int, worker_id: int, *, machine_code: str, notes: str | None = None
    ) -> ActivityEvent:
        return self.apply(
            work_order_id, worker_id, ActivityKind.RESUME, machine_code=machine_code, notes=notes
        )

    def finish(
        self, work_order_id: int, worker_id: int, *, machine_code: str, notes: str | None = None
    ) -> ActivityEvent:
        return self.apply(
            work_order_id, worker_id, ActivityKind.FINISH, machine_code=machine_code, notes=notes
        )

    @staticmethod
    def _validate_ids(work_order_id: int, worker_id: int) -> None:
        if not work_order_id or work_order_id <= 0:
            raise InvalidActivityRequestError("Invalid work order id")
        if not worker_id or worker_id <= 0:
            raise InvalidActivityRequestError("Invalid worker id")
