"""Publish-once alerting for newly due mobile collections."""
from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional, Protocol, Sequence

from .activation import ActivationScanner
from .config import DEFAULT_ALERT_TIMEOUT_SECONDS, MOBILE_PHLEBOTOMY
from .errors import ExternalServiceError
from .models import CadenceFilter, CadenceItem, ItemStatus
from .store import CadenceStore

logger = logging.getLogger(__name__)


class Deadline:
    """Wall-clock budget handed to the alert publisher.

    Publishers should bound their own blocking calls by ``remaining()`` and
    stop early once ``cancelled`` is set.
    """

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds
        self._cancelled = threading.Event()

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()


class AlertPublisher(Protocol):
    """External capability that announces cadence items."""

    def create_alerts(self, deadline: Deadline, items: Sequence[CadenceItem]) -> None:
        """Deliver *items* before *deadline*; raise on any failure."""


def select_alertable(items: Sequence[CadenceItem], method: str = MOBILE_PHLEBOTOMY) -> List[CadenceItem]:
    return [item for item in items if item.blood_collection_method == method and not item.published]


class AlertCoordinator:
    """Drives the alert publisher for items surfaced by the activation scan.

    Without a publisher the coordinator only promotes due items.
    """

    def __init__(
        self,
        scanner: ActivationScanner,
        store: CadenceStore,
        publisher: Optional[AlertPublisher] = None,
        *,
        timeout_seconds: Optional[float] = None,
        method: str = MOBILE_PHLEBOTOMY,
    ) -> None:
        self._scanner = scanner
        self._store = store
        self._publisher = publisher
        self._timeout_seconds = DEFAULT_ALERT_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self._method = method

    @property
    def publishing_enabled(self) -> bool:
        return self._publisher is not None

    def activate_and_notify(self) -> List[CadenceItem]:
        """Promote due items and alert on the mobile ones not yet published.

        Returns the items that were marked published.
        """

        if self._publisher is None:
            self._scanner.promote()
            return []

        activated = self._scanner.activate_upcoming()
        return self._publish(select_alertable(activated, self._method))

    def notify_unpublished(self) -> List[CadenceItem]:
        """Retry delivery for Pending mobile items whose alert never went out.

        Items leave the activation window once they are Pending, so a failed
        publish is only recoverable through this scan.
        """

        if self._publisher is None:
            logger.warning("No alert publisher configured; skipping unpublished retry")
            return []

        stranded = self._store.find(
            CadenceFilter(status=ItemStatus.PENDING, published=False, method=self._method)
        )
        return self._publish(stranded)

    def _publish(self, batch: List[CadenceItem]) -> List[CadenceItem]:
        if not batch:
            logger.debug("No cadence items require an alert")
            return []

        self._call_publisher(batch)

        ids = [item.id for item in batch]
        # Marked only after the publisher returned; nothing is held open across the call.
        self._store.update(CadenceFilter.for_ids(ids), {"published": True})
        logger.info("Published alerts for %s cadence items", len(batch))
        return self._store.find(CadenceFilter.for_ids(ids))

    def _call_publisher(self, batch: List[CadenceItem]) -> None:
        deadline = Deadline(self._timeout_seconds)
        failure: List[BaseException] = []

        def _deliver() -> None:
            try:
                self._publisher.create_alerts(deadline, list(batch))
            except BaseException as exc:  # noqa: BLE001 - handed back to the calling thread
                failure.append(exc)

        # Daemon thread: a publisher ignoring cancellation must not block interpreter exit.
        worker = threading.Thread(target=_deliver, name="cadence-alerts", daemon=True)
        worker.start()
        worker.join(self._timeout_seconds)

        if worker.is_alive():
            deadline.cancel()
            logger.error(
                "Alert publisher did not answer within %.1fs for %s items",
                self._timeout_seconds,
                len(batch),
            )
            raise ExternalServiceError(f"Alert publish timed out after {self._timeout_seconds:.1f}s")
        if failure:
            exc = failure[0]
            logger.error("Alert publish failed for %s items: %s", len(batch), exc)
            raise ExternalServiceError(f"Alert publish failed: {exc}") from exc


__all__ = [
    "AlertCoordinator",
    "AlertPublisher",
    "Deadline",
    "select_alertable",
]
