"""Connector implementations for the cadence store and alert service."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Mapping, Sequence, TypeVar

from cadence.models import CadenceFilter, CadenceItem, validate_assignments

T = TypeVar("T")


class InMemoryCadenceStore:
    """In-memory cadence store simulator.

    Transactions hold a re-entrant lock for their whole duration and restore
    the previous snapshot when the unit of work raises.
    """

    def __init__(self) -> None:
        self._items: Dict[int, CadenceItem] = {}
        self._sequence: int = 1
        self._lock = threading.RLock()

    def find(self, criteria: CadenceFilter) -> List[CadenceItem]:
        with self._lock:
            matches = [item.copy() for item in self._items.values() if criteria.matches(item)]
        return sorted(matches, key=lambda item: (item.cadence_date, item.id))

    def create(self, items: Sequence[CadenceItem]) -> List[CadenceItem]:
        created: List[CadenceItem] = []
        with self._lock:
            for item in items:
                record = item.copy(id=self._sequence)
                self._sequence += 1
                self._items[record.id] = record
                created.append(record.copy())
        return created

    def update(self, criteria: CadenceFilter, assignments: Mapping[str, Any]) -> int:
        changes = validate_assignments(assignments)
        with self._lock:
            matched = [item_id for item_id, item in self._items.items() if criteria.matches(item)]
            for item_id in matched:
                self._items[item_id] = self._items[item_id].copy(**changes)
        return len(matched)

    def delete(self, criteria: CadenceFilter) -> int:
        with self._lock:
            matched = [item_id for item_id, item in self._items.items() if criteria.matches(item)]
            for item_id in matched:
                del self._items[item_id]
        return len(matched)

    def run_in_transaction(self, unit_of_work: Callable[["InMemoryCadenceStore"], T]) -> T:
        with self._lock:
            snapshot = dict(self._items)
            sequence = self._sequence
            try:
                return unit_of_work(self)
            except BaseException:
                self._items = snapshot
                self._sequence = sequence
                raise


__all__ = ["InMemoryCadenceStore"]
