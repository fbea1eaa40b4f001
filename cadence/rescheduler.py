"""Replacement of a patient's live cadence series."""
from __future__ import annotations

import logging
from typing import List

from .models import CadenceFilter, CadenceItem, ItemStatus, ScheduleRequest
from .series import generate_series
from .store import CadenceStore

logger = logging.getLogger(__name__)


def delete_non_fulfilled(store: CadenceStore, patient_id: int) -> int:
    """Remove every non-Fulfilled item of *patient_id* using *store*.

    ``published`` is reset before the delete so a removed row can never be
    read back as a delivered alert.
    """

    live_items = store.find(
        CadenceFilter(patient_id=patient_id, exclude_status=ItemStatus.FULFILLED)
    )
    if not live_items:
        return 0

    ids = [item.id for item in live_items]
    store.update(CadenceFilter.for_ids(ids), {"published": False})
    removed = store.delete(CadenceFilter.for_ids(ids))
    logger.debug("Removed %s non-fulfilled cadence items for patient %s", removed, patient_id)
    return removed


class Rescheduler:
    """Coordinates the replacement of a patient's unfulfilled series."""

    def __init__(self, store: CadenceStore) -> None:
        self._store = store

    def schedule(self, request: ScheduleRequest) -> List[CadenceItem]:
        """Atomically swap the patient's live items for a freshly generated series."""

        def _replace_series(tx: CadenceStore) -> List[CadenceItem]:
            removed = delete_non_fulfilled(tx, request.patient_id)
            drafts = generate_series(
                request.patient_id,
                request.cadence_days,
                request.start_date,
                test_order_id=request.test_order_id,
                practice_id=request.practice_id,
                method=request.blood_collection_method,
            )
            created = tx.create(drafts) if drafts else []
            logger.info(
                "Rescheduled patient %s: removed %s live items, created %s (every %s days)",
                request.patient_id,
                removed,
                len(created),
                request.cadence_days,
            )
            return created

        return self._store.run_in_transaction(_replace_series)

    def delete_non_fulfilled(self, patient_id: int) -> int:
        return self._store.run_in_transaction(lambda tx: delete_non_fulfilled(tx, patient_id))


__all__ = ["Rescheduler", "delete_non_fulfilled"]
