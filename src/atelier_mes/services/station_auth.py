"""Station selection and session lifecycle for shop-floor logins.

Credential checks and the station authorization policy belong to the
surrounding application; this service consumes them through
``StationDirectory`` and turns an authorized selection into a session.
"""

from __future__ import annotations

import logging
from typing import Protocol

from atelier_mes.core.errors import (
    InvalidActivityRequestError,
    StationNotAuthorizedError,
    UnknownSessionError,
    UnknownStationError,
)
from atelier_mes.db.time import Clock, utcnow
from atelier_mes.schemas.session import SessionGrant, Station, WorkerSession
from atelier_mes.services.sessions import SessionStore

__all__ = ["StationDirectory", "StationSessionService"]

logger = logging.getLogger(__name__)


class StationDirectory(Protocol):
    """Supplied lookup of stations and worker authorizations."""

    def find_station(self, station_code: str) -> Station | None: ...

    def is_authorized(self, worker_id: int, station_code: str) -> bool: ...


class StationSessionService:
    """Open, rotate and close worker sessions bound to a station."""

    def __init__(
        self, store: SessionStore, directory: StationDirectory, *, clock: Clock = utcnow
    ) -> None:
        self.store = store
        self.directory = directory
        self._clock = clock

    def open_session(
        self,
        worker_id: int,
        station_code: str,
        *,
        worker_name: str | None = None,
        replace_token: str | None = None,
    ) -> SessionGrant:
        """Create a session for ``worker_id`` at ``station_code``.

        When ``replace_token`` names a live session (station reselection) it is
        invalidated in the same step the new token is issued.

        Raises:
            InvalidActivityRequestError: for a non-positive worker id or empty station code.
            StationNotAuthorizedError: if the worker may not use the station.
            UnknownStationError: if the station does not exist.
            UnknownSessionError: if ``replace_token`` is given but not live.
        """
        if not worker_id or worker_id <= 0:
            raise InvalidActivityRequestError("Invalid worker id")
        station_code = (station_code or "").strip()
        if not station_code:
            raise InvalidActivityRequestError("Station code is required")

        if not self.directory.is_authorized(worker_id, station_code):
            logger.warning("Worker %s is not authorized for station %s", worker_id, station_code)
            raise StationNotAuthorizedError(f"Worker {worker_id} is not authorized for {station_code}")

        station = self.directory.find_station(station_code)
        if station is None:
            raise UnknownStationError(f"Station not found: {station_code}")

        if replace_token is not None:
            previous = self.store.get(replace_token)
            if previous is not None and previous.worker_id != worker_id:
                raise UnknownSessionError("Session belongs to another worker")

        session = WorkerSession(
            worker_id=worker_id,
            worker_name=worker_name,
            station_code=station.code,
            station_name=station.name,
            is_default_worker=station.default_worker_id == worker_id,
            login_time=self._clock(),
        )
        if replace_token is not None:
            token = self.store.rotate(replace_token, session)
        else:
            token = self.store.create(session)
        return SessionGrant(token=token, session=session, replaced_token=replace_token)

    def resolve(self, token: str) -> WorkerSession:
        """Return the session behind ``token`` or raise ``UnknownSessionError``."""
        return self.store.require(token)

    def close_session(self, token: str) -> bool:
        return self.store.delete(token)

    def invalidate_worker(self, worker_id: int) -> int:
        """Log a worker out everywhere."""
        return self.store.clear_for_worker(worker_id)
