"""Blood-collection cadence scheduling core."""

from .activation import ActivationScanner
from .alerts import AlertCoordinator, AlertPublisher, Deadline
from .errors import CadenceError, ExternalServiceError, InvalidArgumentError, PersistenceError
from .models import CadenceFilter, CadenceItem, ItemStatus, ScheduleRequest
from .rescheduler import Rescheduler
from .series import generate_series
from .service import CadenceService
from .store import CadenceStore

__all__ = [
    "ActivationScanner",
    "AlertCoordinator",
    "AlertPublisher",
    "CadenceError",
    "CadenceFilter",
    "CadenceItem",
    "CadenceService",
    "CadenceStore",
    "Deadline",
    "ExternalServiceError",
    "InvalidArgumentError",
    "ItemStatus",
    "PersistenceError",
    "Rescheduler",
    "ScheduleRequest",
    "generate_series",
]
