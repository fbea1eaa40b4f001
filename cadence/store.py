"""Persistence capability consumed by the cadence components."""
from __future__ import annotations

from typing import Any, Callable, List, Mapping, Protocol, Sequence, TypeVar

from .models import CadenceFilter, CadenceItem

T = TypeVar("T")


class CadenceStore(Protocol):
    """Protocol describing the minimal interface required from a cadence store.

    Implementations raise ``PersistenceError`` for any failure of the
    underlying engine.
    """

    def find(self, criteria: CadenceFilter) -> List[CadenceItem]:
        """Return matching items ordered by ``cadence_date`` ascending."""

    def create(self, items: Sequence[CadenceItem]) -> List[CadenceItem]:
        """Insert *items* in one batch and return them with their new ids."""

    def update(self, criteria: CadenceFilter, assignments: Mapping[str, Any]) -> int:
        """Apply *assignments* to every matching item in one statement."""

    def delete(self, criteria: CadenceFilter) -> int:
        """Remove every matching item and return how many were removed."""

    def run_in_transaction(self, unit_of_work: Callable[["CadenceStore"], T]) -> T:
        """Run *unit_of_work* against a transactional view of the store.

        The unit commits when it returns and rolls back when it raises.
        """


__all__ = ["CadenceStore"]
