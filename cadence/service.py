"""Cadence service facade used by callers such as the orchestrator CLI."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, List, Optional

from .activation import ActivationScanner
from .alerts import AlertCoordinator, AlertPublisher
from .errors import InvalidArgumentError
from .models import CadenceFilter, CadenceItem, ItemStatus, ScheduleRequest, utc_today
from .rescheduler import Rescheduler
from .store import CadenceStore

logger = logging.getLogger(__name__)


class CadenceService:
    """Entry point bundling scheduling, activation, alerting and lookups.

    The alert publisher is optional; when it is omitted ``activate_and_notify``
    only promotes due items.
    """

    def __init__(
        self,
        store: CadenceStore,
        *,
        alert_publisher: Optional[AlertPublisher] = None,
        clock: Callable[[], date] = utc_today,
        lookahead_days: Optional[int] = None,
        alert_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._rescheduler = Rescheduler(store)
        self._scanner = ActivationScanner(store, clock=clock, lookahead_days=lookahead_days)
        self._coordinator = AlertCoordinator(
            self._scanner,
            store,
            alert_publisher,
            timeout_seconds=alert_timeout_seconds,
        )

    def schedule(self, request: ScheduleRequest) -> List[CadenceItem]:
        return self._rescheduler.schedule(request)

    def delete_non_fulfilled(self, patient_id: int) -> int:
        return self._rescheduler.delete_non_fulfilled(patient_id)

    def activate_upcoming(self) -> List[CadenceItem]:
        return self._scanner.activate_upcoming()

    def promote_due(self) -> int:
        return self._scanner.promote()

    def activate_and_notify(self) -> List[CadenceItem]:
        return self._coordinator.activate_and_notify()

    def notify_unpublished(self) -> List[CadenceItem]:
        return self._coordinator.notify_unpublished()

    def toggle_collection_method(self, item_id: int, method: str) -> int:
        updated = self._store.update(
            CadenceFilter.for_ids([item_id]), {"blood_collection_method": method}
        )
        logger.debug("Set collection method of cadence item %s to %r", item_id, method)
        return updated

    def update_status(self, item_id: int, status: str) -> int:
        updated = self._store.update(CadenceFilter.for_ids([item_id]), {"item_status": status})
        logger.debug("Set status of cadence item %s to %r", item_id, status)
        return updated

    def items_by_patient(self, patient_id: int) -> List[CadenceItem]:
        return self._store.find(CadenceFilter(patient_id=patient_id))

    def items_by_practice(self, practice_id: int) -> List[CadenceItem]:
        return self._store.find(CadenceFilter(practice_id=practice_id))

    def pending_items_by_practice(self, practice_id: int) -> List[CadenceItem]:
        return self._store.find(CadenceFilter(practice_id=practice_id, status=ItemStatus.PENDING))

    def due_items(self) -> List[CadenceItem]:
        return self._store.find(CadenceFilter(status=ItemStatus.PENDING))

    def patient_items_within(self, patient_id: int, days: int) -> List[CadenceItem]:
        """Pending items of one patient dated within *days* either side of today."""

        return self._store.find(self._window_filter(days, patient_id=patient_id))

    def items_within(self, days: int) -> List[CadenceItem]:
        return self._store.find(self._window_filter(days))

    def _window_filter(self, days: int, **constraints) -> CadenceFilter:
        if days < 0:
            raise InvalidArgumentError(f"days must not be negative, got {days}")
        today = self._clock()
        return CadenceFilter(
            status=ItemStatus.PENDING,
            date_from=today - timedelta(days=days),
            date_to=today + timedelta(days=days),
            **constraints,
        )


__all__ = ["CadenceService"]
