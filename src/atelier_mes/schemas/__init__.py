"""Pydantic schemas for the Atelier MES core."""

from .activity import (
    ActionError,
    ActivityEvent,
    ActivityKind,
    BulkActivityResult,
    WorkerActionResult,
    WorkerActivityState,
)
from .production import (
    BatchNumber,
    ProductionEntryResult,
    ProductionEntryValidation,
    ReceiptLine,
    WorkOrderQuantitySnapshot,
)
from .session import SessionGrant, Station, WorkerSession
from .team import BreakReason, MachineBoard, TeamWorker

__all__ = [
    "ActionError", "ActivityEvent", "ActivityKind", "BulkActivityResult",
    "WorkerActionResult", "WorkerActivityState",
    "BatchNumber", "ProductionEntryResult", "ProductionEntryValidation",
    "ReceiptLine", "WorkOrderQuantitySnapshot",
    "SessionGrant", "Station", "WorkerSession",
    "BreakReason", "MachineBoard", "TeamWorker",
]
