"""Activity-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from atelier_mes.core.errors import CorruptActivityLogError, ErrorKind

WorkerStatus = Literal["idle", "working", "paused"]


class ActivityKind(str, Enum):
    """Worker actions, valued by their persisted process codes."""

    START = "BAS"
    STOP = "DUR"
    RESUME = "DEV"
    FINISH = "BIT"

    @classmethod
    def from_code(cls, code: str) -> ActivityKind:
        """Map a stored process code back to a kind, failing closed."""
        try:
            return cls(code)
        except ValueError as exc:
            raise CorruptActivityLogError(f"Unrecognized activity process code: {code!r}") from exc

    @property
    def label(self) -> str:
        return self.name.capitalize()


class ActivityEvent(BaseModel):
    """Immutable entry of the activity log."""

    id: str = Field(..., min_length=1, description="Unique event identifier")
    work_order_id: int = Field(..., gt=0)
    machine_code: str = Field(..., min_length=1)
    worker_id: int = Field(..., gt=0)
    kind: ActivityKind
    occurred_at: datetime
    break_code: str | None = None
    notes: str | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _break_code_only_on_stop(self) -> ActivityEvent:
        if self.kind is ActivityKind.STOP and not self.break_code:
            raise ValueError("a STOP event requires a break code")
        if self.kind is not ActivityKind.STOP and self.break_code is not None:
            raise ValueError("only STOP events carry a break code")
        return self


class WorkerActivityState(BaseModel):
    """State of one worker on one work order, derived from the latest event."""

    last_event: ActivityEvent | None = None
    can_start: bool = False
    can_stop: bool = False
    can_resume: bool = False
    can_finish: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def status(self) -> WorkerStatus:
        if self.can_resume:
            return "paused"
        if self.can_stop:
            return "working"
        return "idle"

    def permits(self, kind: ActivityKind) -> bool:
        """Return True if ``kind`` is a legal next action."""
        return {
            ActivityKind.START: self.can_start,
            ActivityKind.STOP: self.can_stop,
            ActivityKind.RESUME: self.can_resume,
            ActivityKind.FINISH: self.can_finish,
        }[kind]


class ActionError(BaseModel):
    """Why a single worker's action was rejected."""

    kind: ErrorKind
    message: str


class WorkerActionResult(BaseModel):
    """Outcome of one worker inside a multi-worker action."""

    worker_id: int
    success: bool
    event: ActivityEvent | None = None
    error: ActionError | None = None


class BulkActivityResult(BaseModel):
    """Aggregate outcome of a multi-worker action.

    ``success`` is true only when every item succeeded; ``results`` is always
    complete and ordered like the requested worker ids.
    """

    work_order_id: int
    kind: ActivityKind
    success: bool
    results: list[WorkerActionResult]

    @property
    def failed(self) -> list[WorkerActionResult]:
        return [result for result in self.results if not result.success]
