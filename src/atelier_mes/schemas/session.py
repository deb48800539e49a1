"""Session and station schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WorkerSession(BaseModel):
    """Worker and station context bound to a session token."""

    worker_id: int = Field(..., gt=0)
    worker_name: str | None = None
    station_code: str = Field(..., min_length=1)
    station_name: str
    is_default_worker: bool = False
    login_time: datetime

    model_config = ConfigDict(frozen=True)


class Station(BaseModel):
    """A machine a worker can log in to."""

    code: str = Field(..., min_length=1)
    name: str
    default_worker_id: int | None = None

    model_config = ConfigDict(frozen=True)


class SessionGrant(BaseModel):
    """Token handed back to the caller together with the stored session."""

    token: str
    session: WorkerSession
    replaced_token: str | None = None
