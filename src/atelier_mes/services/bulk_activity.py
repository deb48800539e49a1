"""Apply one activity action to several workers at once.

This is not a transaction. Each worker's check-and-append is its
own atomic unit, and a rejection for one worker never rolls back or skips the
others.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from atelier_mes.core.errors import ErrorKind, ShopfloorError
from atelier_mes.core.settings import settings
from atelier_mes.schemas.activity import (
    ActionError,
    ActivityKind,
    BulkActivityResult,
    WorkerActionResult,
)
from atelier_mes.services.activity import ActivityStateMachine

__all__ = ["MultiWorkerActionCoordinator"]

logger = logging.getLogger(__name__)


class MultiWorkerActionCoordinator:
    """Fan an action out over a list of workers and collect per-worker outcomes."""

    def __init__(self, machine: ActivityStateMachine, *, max_workers: int | None = None) -> None:
        self.machine = machine
        self.max_workers = max_workers if max_workers is not None else settings.bulk_action_max_workers

    def apply_many(
        self,
        work_order_id: int,
        worker_ids: Sequence[int],
        kind: ActivityKind,
        *,
        machine_code: str,
        break_code: str | None = None,
        notes: str | None = None,
    ) -> BulkActivityResult:
        """Apply ``kind`` for every worker in ``worker_ids``.

        Returns:
            A result whose items follow the order of ``worker_ids``; ``success``
            is true only if every item succeeded.
        """
        kind = ActivityKind(kind)

        def run(worker_id: int) -> WorkerActionResult:
            return self._apply_one(work_order_id, worker_id, kind, machine_code, break_code, notes)

        if self.max_workers > 1 and len(worker_ids) > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(worker_ids))) as pool:
                results = list(pool.map(run, worker_ids))
        else:
            results = [run(worker_id) for worker_id in worker_ids]

        success = all(result.success for result in results)
        if not success:
            logger.info(
                "%s on work order %s failed for %d of %d workers",
                kind.name,
                work_order_id,
                sum(1 for result in results if not result.success),
                len(results),
            )
        return BulkActivityResult(
            work_order_id=work_order_id,
            kind=kind,
            success=success,
            results=results,
        )

    def _apply_one(
        self,
        work_order_id: int,
        worker_id: int,
        kind: ActivityKind,
        machine_code: str,
        break_code: str | None,
        notes: str | None,
    ) -> WorkerActionResult:
        try:
            event = self.machine.apply(
                work_order_id,
                worker_id,
                kind,
                machine_code=machine_code,
                break_code=break_code,
                notes=notes,
            )
        except ShopfloorError as exc:
            return WorkerActionResult(
                worker_id=worker_id,
                success=False,
                error=ActionError(kind=exc.kind, message=str(exc)),
            )
        except Exception as exc:
            # Reported per worker; the rest of the batch still runs.
            logger.exception("Unexpected failure applying %s for worker %s", kind.name, worker_id)
            return WorkerActionResult(
                worker_id=worker_id,
                success=False,
                error=ActionError(kind=ErrorKind.INTERNAL, message=str(exc)),
            )
        return WorkerActionResult(worker_id=worker_id, success=True, event=event)
