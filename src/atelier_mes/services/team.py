"""Machine worker board: who is working, paused or free on each machine today."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from atelier_mes.core.settings import settings
from atelier_mes.db.time import Clock, utcnow
from atelier_mes.repositories.activity_repo import ActivityLogStore
from atelier_mes.schemas.activity import ActivityKind
from atelier_mes.schemas.team import MachineBoard, TeamWorker

__all__ = ["TeamStatusService"]


class TeamStatusService:
    """Classify a machine's workers by their latest event of the day.

    START or RESUME means assigned, STOP means paused, and no event today or
    a FINISH means available.
    """

    def __init__(
        self, store: ActivityLogStore, *, clock: Clock = utcnow, timezone: str | None = None
    ) -> None:
        self.store = store
        self._clock = clock
        self._zone = ZoneInfo(timezone or settings.plant_timezone)

    def machine_board(
        self, machine_code: str, worker_ids: Sequence[int], *, day: date | None = None
    ) -> MachineBoard:
        if day is None:
            day = self._clock().astimezone(self._zone).date()
        since = datetime.combine(day, time.min, tzinfo=self._zone)
        latest = self.store.latest_on_machine(machine_code, worker_ids, since)

        board = MachineBoard(machine_code=machine_code)
        for worker_id in worker_ids:
            event = latest.get(worker_id)
            if event is None or event.kind is ActivityKind.FINISH:
                board.available.append(TeamWorker(worker_id=worker_id, status="available"))
            elif event.kind is ActivityKind.STOP:
                board.paused.append(
                    TeamWorker(worker_id=worker_id, status="paused", work_order_id=event.work_order_id)
                )
            else:
                board.assigned.append(
                    TeamWorker(worker_id=worker_id, status="assigned", work_order_id=event.work_order_id)
                )
        return board
