"""Derivation of a worker's activity state from the activity log.

The state is never stored. It is recomputed from the most recent event of a
(work order, worker) pair:

* no event, or FINISH: the worker may only START
* START or RESUME: the worker may STOP or FINISH
* STOP: the worker may RESUME or FINISH
"""

from __future__ import annotations

from collections.abc import Sequence

from atelier_mes.core.errors import CorruptActivityLogError
from atelier_mes.schemas.activity import ActivityEvent, ActivityKind, WorkerActivityState

__all__ = ["resolve_state", "resolve_from_history", "latest_event"]


def resolve_state(latest: ActivityEvent | None) -> WorkerActivityState:
    """Return the permitted actions following ``latest``.

    Raises:
        CorruptActivityLogError: if the event's kind is not a known action.
    """
    if latest is None:
        return WorkerActivityState(can_start=True)

    kind = latest.kind
    if kind is ActivityKind.FINISH:
        return WorkerActivityState(last_event=latest, can_start=True)
    if kind in (ActivityKind.START, ActivityKind.RESUME):
        return WorkerActivityState(last_event=latest, can_stop=True, can_finish=True)
    if kind is ActivityKind.STOP:
        return WorkerActivityState(last_event=latest, can_resume=True, can_finish=True)
    raise CorruptActivityLogError(f"Activity {latest.id} has unrecognized kind {kind!r}")


def latest_event(events: Sequence[ActivityEvent]) -> ActivityEvent | None:
    """Return the most recent event; ties on timestamp go to the later position."""
    if not events:
        return None
    index = max(range(len(events)), key=lambda i: (events[i].occurred_at, i))
    return events[index]


def resolve_from_history(events: Sequence[ActivityEvent]) -> WorkerActivityState:
    """Resolve state from the full event history of one (work order, worker) pair."""
    return resolve_state(latest_event(events))
