"""Data access for the append-only activity log."""
from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from threading import Lock
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from atelier_mes.core.errors import CorruptActivityLogError, DuplicateActivityError
from atelier_mes.db.time import ensure_aware
from atelier_mes.models.activity import ActivityRecord
from atelier_mes.schemas.activity import ActivityEvent, ActivityKind

__all__ = ["ActivityLogStore", "InMemoryActivityLogStore", "SqlActivityLogStore"]

logger = logging.getLogger(__name__)


class ActivityLogStore(Protocol):
    """Append-only event store consumed by the activity services."""

    def append(self, event: ActivityEvent) -> None: ...

    def latest_for(self, work_order_id: int, worker_id: int) -> ActivityEvent | None: ...

    def all_for(self, work_order_id: int) -> list[ActivityEvent]: ...

    def all_for_worker(self, work_order_id: int, worker_id: int) -> list[ActivityEvent]: ...

    def latest_on_machine(
        self, machine_code: str, worker_ids: Iterable[int], since: datetime
    ) -> dict[int, ActivityEvent]: ...


def _ordered(events: Iterable[tuple[int, ActivityEvent]]) -> list[ActivityEvent]:
    """Sort (insertion index, event) pairs by timestamp, then insertion order."""
    return [event for _, event in sorted(events, key=lambda item: (item[1].occurred_at, item[0]))]


class InMemoryActivityLogStore:
    """Process-local activity log.

    Events are kept in insertion order; readers get copies so the log itself
    is never exposed for mutation.
    """

    def __init__(self) -> None:
        self._events: list[ActivityEvent] = []
        self._by_key: dict[tuple[int, int], list[int]] = defaultdict(list)
        self._ids: set[str] = set()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(self, event: ActivityEvent) -> None:
        with self._lock:
            if event.id in self._ids:
                raise DuplicateActivityError(f"Activity {event.id} already recorded")
            self._ids.add(event.id)
            self._by_key[(event.work_order_id, event.worker_id)].append(len(self._events))
            self._events.append(event)

    def latest_for(self, work_order_id: int, worker_id: int) -> ActivityEvent | None:
        with self._lock:
            indexes = self._by_key.get((work_order_id, worker_id))
            if not indexes:
                return None
            latest = max(indexes, key=lambda i: (self._events[i].occurred_at, i))
            return self._events[latest]

    def all_for(self, work_order_id: int) -> list[ActivityEvent]:
        with self._lock:
            return _ordered(
                (i, event)
                for i, event in enumerate(self._events)
                if event.work_order_id == work_order_id
            )

    def all_for_worker(self, work_order_id: int, worker_id: int) -> list[ActivityEvent]:
        with self._lock:
            indexes = self._by_key.get((work_order_id, worker_id), [])
            return _ordered((i, self._events[i]) for i in indexes)

    def latest_on_machine(
        self, machine_code: str, worker_ids: Iterable[int], since: datetime
    ) -> dict[int, ActivityEvent]:
        wanted = set(worker_ids)
        with self._lock:
            matching = _ordered(
                (i, event)
                for i, event in enumerate(self._events)
                if event.machine_code == machine_code
                and event.worker_id in wanted
                and event.occurred_at >= since
            )
        # Later events overwrite earlier ones.
        return {event.worker_id: event for event in matching}


class SqlActivityLogStore:
    """Activity log persisted in the ``activity_event`` table.

    Each call opens its own short-lived session from ``session_factory`` so
    the store can be shared between threads.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from atelier_mes.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def append(self, event: ActivityEvent) -> None:
        record = ActivityRecord(
            code=event.id,
            work_order_id=event.work_order_id,
            machine_code=event.machine_code,
            worker_id=event.worker_id,
            process_type=event.kind.value,
            occurred_at=event.occurred_at.astimezone(UTC),
            break_code=event.break_code,
            notes=event.notes,
        )
        with self._session_factory() as db:
            db.add(record)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateActivityError(f"Activity {event.id} already recorded") from exc
        logger.debug("Persisted activity %s (%s)", event.id, event.kind.value)

    def latest_for(self, work_order_id: int, worker_id: int) -> ActivityEvent | None:
        stmt = (
            select(ActivityRecord)
            .where(
                ActivityRecord.work_order_id == work_order_id,
                ActivityRecord.worker_id == worker_id,
            )
            .order_by(ActivityRecord.occurred_at.desc(), ActivityRecord.seq.desc())
            .limit(1)
        )
        with self._session_factory() as db:
            record = db.execute(stmt).scalars().first()
            return self._to_event(record) if record is not None else None

    def all_for(self, work_order_id: int) -> list[ActivityEvent]:
        stmt = (
            select(ActivityRecord)
            .where(ActivityRecord.work_order_id == work_order_id)
            .order_by(ActivityRecord.occurred_at, ActivityRecord.seq)
        )
        with self._session_factory() as db:
            return [self._to_event(record) for record in db.execute(stmt).scalars()]

    def all_for_worker(self, work_order_id: int, worker_id: int) -> list[ActivityEvent]:
        stmt = (
            select(ActivityRecord)
            .where(
                ActivityRecord.work_order_id == work_order_id,
                ActivityRecord.worker_id == worker_id,
            )
            .order_by(ActivityRecord.occurred_at, ActivityRecord.seq)
        )
        with self._session_factory() as db:
            return [self._to_event(record) for record in db.execute(stmt).scalars()]

    def latest_on_machine(
        self, machine_code: str, worker_ids: Iterable[int], since: datetime
    ) -> dict[int, ActivityEvent]:
        wanted = list(set(worker_ids))
        if not wanted:
            return {}
        stmt = (
            select(ActivityRecord)
            .where(
                ActivityRecord.machine_code == machine_code,
                ActivityRecord.worker_id.in_(wanted),
                ActivityRecord.occurred_at >= since.astimezone(UTC),
            )
            .order_by(ActivityRecord.occurred_at, ActivityRecord.seq)
        )
        with self._session_factory() as db:
            return {
                record.worker_id: self._to_event(record)
                for record in db.execute(stmt).scalars()
            }

    @staticmethod
    def _to_event(record: ActivityRecord) -> ActivityEvent:
        # from_code fails closed on unknown process codes.
        kind = ActivityKind.from_code(record.process_type)
        try:
            return ActivityEvent(
                id=record.code,
                work_order_id=record.work_order_id,
                machine_code=record.machine_code,
                worker_id=record.worker_id,
                kind=kind,
                occurred_at=ensure_aware(record.occurred_at),
                break_code=record.break_code,
                notes=record.notes,
            )
        except ValidationError as exc:
            raise CorruptActivityLogError(f"Malformed activity row {record.code!r}: {exc}") from exc
