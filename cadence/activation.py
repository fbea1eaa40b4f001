"""Promotion of due cadence items from Future to Pending."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Callable, List, Optional

from .config import DEFAULT_LOOKAHEAD_DAYS
from .models import CadenceFilter, CadenceItem, ItemStatus, utc_today
from .store import CadenceStore

logger = logging.getLogger(__name__)


class ActivationScanner:
    """Moves Future items whose date falls inside the lookahead window to Pending."""

    def __init__(
        self,
        store: CadenceStore,
        *,
        clock: Callable[[], date] = utc_today,
        lookahead_days: Optional[int] = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._lookahead_days = DEFAULT_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days

    def window_end(self) -> date:
        return self._clock() + timedelta(days=self._lookahead_days)

    def _due_filter(self) -> CadenceFilter:
        return CadenceFilter(status=ItemStatus.FUTURE, date_to=self.window_end())

    def promote(self) -> int:
        """Transition due items with a single conditional update; return the row count."""

        promoted = self._store.update(self._due_filter(), {"item_status": ItemStatus.PENDING})
        logger.info("Promoted %s cadence items to %s", promoted, ItemStatus.PENDING)
        return promoted

    def activate_upcoming(self) -> List[CadenceItem]:
        """Read the due items, promote them, and return the rows that were read.

        The update stays guarded by ``item_status = Future`` so a concurrent scan
        that captured the same rows cannot demote or double-apply anything.
        """

        def _scan(tx: CadenceStore) -> List[CadenceItem]:
            due_items = tx.find(self._due_filter())
            if not due_items:
                return []
            ids = [item.id for item in due_items]
            promoted = tx.update(
                CadenceFilter.for_ids(ids, status=ItemStatus.FUTURE),
                {"item_status": ItemStatus.PENDING},
            )
            if promoted != len(ids):
                logger.debug("Only %s of %s scanned items were still Future", promoted, len(ids))
            return due_items

        activated = self._store.run_in_transaction(_scan)
        logger.info("Activated %s cadence items due by %s", len(activated), self.window_end())
        return activated


__all__ = ["ActivationScanner"]
