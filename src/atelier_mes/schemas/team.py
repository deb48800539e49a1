"""Schemas for the machine worker board."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TeamStatus = Literal["assigned", "paused", "available"]


class BreakReason(BaseModel):
    """Reason a worker can give when stopping work."""

    code: str = Field(..., min_length=1)
    name: str

    model_config = ConfigDict(frozen=True)


class TeamWorker(BaseModel):
    """A worker's status on one machine."""

    worker_id: int
    status: TeamStatus
    work_order_id: int | None = None


class MachineBoard(BaseModel):
    """Workers of one machine grouped by status."""

    machine_code: str
    assigned: list[TeamWorker] = Field(default_factory=list)
    paused: list[TeamWorker] = Field(default_factory=list)
    available: list[TeamWorker] = Field(default_factory=list)
