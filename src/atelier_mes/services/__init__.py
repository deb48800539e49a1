# src/atelier_mes/services/__init__.py
"""Business logic services for the Atelier MES core."""

from .activity import ActivityStateMachine
from .break_reasons import BreakReasonCatalog
from .bulk_activity import MultiWorkerActionCoordinator
from .production_entry import BatchSequencer, ProductionEntryService, ProductionEntryValidator
from .sessions import SessionStore, get_session_store
from .station_auth import StationSessionService
from .team import TeamStatusService

__all__ = [
    "ActivityStateMachine",
    "BatchSequencer",
    "BreakReasonCatalog",
    "MultiWorkerActionCoordinator",
    "ProductionEntryService",
    "ProductionEntryValidator",
    "SessionStore",
    "StationSessionService",
    "TeamStatusService",
    "get_session_store",
]
