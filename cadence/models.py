"""Data model for blood-collection cadence items."""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from .errors import InvalidArgumentError

DateLike = Union[date, datetime]


class ItemStatus:
    """Lifecycle values stored in ``CadenceItem.item_status``."""

    FUTURE = "Future"
    PENDING = "Pending"
    FULFILLED = "Fulfilled"

    ALL = (FUTURE, PENDING, FULFILLED)


# Columns that ``CadenceStore.update`` is allowed to assign.
MUTABLE_FIELDS: FrozenSet[str] = frozenset(
    {
        "item_status",
        "published",
        "active",
        "blood_collection_method",
        "blood_collection_date",
        "order_date",
    }
)


def truncate_to_day(value: DateLike) -> date:
    """Drop any time-of-day component; aware datetimes are read in UTC."""

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidArgumentError(f"Expected a date or datetime, got {type(value).__name__}")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class CadenceItem:
    """One scheduled blood-collection occurrence for a patient."""

    patient_id: int
    cadence_date: date
    practice_id: Optional[int] = None
    test_order_id: Optional[int] = None
    blood_collection_method: str = ""
    order_date: Optional[date] = None
    blood_collection_date: Optional[date] = None
    active: bool = False
    item_status: str = ItemStatus.FUTURE
    published: bool = False
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.cadence_date = truncate_to_day(self.cadence_date)

    @property
    def is_live(self) -> bool:
        return self.item_status != ItemStatus.FULFILLED

    def copy(self, **changes: Any) -> "CadenceItem":
        return replace(self, **changes)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "practice_id": self.practice_id,
            "test_order_id": self.test_order_id,
            "cadence_date": self.cadence_date.isoformat(),
            "order_date": self.order_date.isoformat() if self.order_date else None,
            "blood_collection_method": self.blood_collection_method,
            "blood_collection_date": (
                self.blood_collection_date.isoformat() if self.blood_collection_date else None
            ),
            "active": self.active,
            "item_status": self.item_status,
            "published": self.published,
        }


@dataclass(frozen=True)
class ScheduleRequest:
    """Parameters for replacing a patient's live cadence series."""

    patient_id: int
    cadence_days: int
    start_date: DateLike
    blood_collection_method: str = ""
    test_order_id: Optional[int] = None
    practice_id: Optional[int] = None


@dataclass(frozen=True)
class CadenceFilter:
    """Conjunction of predicates understood by every cadence store.

    ``None`` means "no constraint". ``date_from``/``date_to`` are inclusive.
    """

    ids: Optional[FrozenSet[int]] = None
    patient_id: Optional[int] = None
    practice_id: Optional[int] = None
    status: Optional[str] = None
    exclude_status: Optional[str] = None
    published: Optional[bool] = None
    method: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @classmethod
    def for_ids(cls, ids, **constraints: Any) -> "CadenceFilter":
        return cls(ids=frozenset(ids), **constraints)

    def matches(self, item: CadenceItem) -> bool:
        if self.ids is not None and item.id not in self.ids:
            return False
        if self.patient_id is not None and item.patient_id != self.patient_id:
            return False
        if self.practice_id is not None and item.practice_id != self.practice_id:
            return False
        if self.status is not None and item.item_status != self.status:
            return False
        if self.exclude_status is not None and item.item_status == self.exclude_status:
            return False
        if self.published is not None and item.published != self.published:
            return False
        if self.method is not None and item.blood_collection_method != self.method:
            return False
        if self.date_from is not None and item.cadence_date < self.date_from:
            return False
        if self.date_to is not None and item.cadence_date > self.date_to:
            return False
        return True


def validate_assignments(assignments: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of *assignments* after rejecting unknown or empty updates."""

    if not assignments:
        raise InvalidArgumentError("At least one field assignment is required")
    unknown = set(assignments) - MUTABLE_FIELDS
    if unknown:
        raise InvalidArgumentError(f"Fields cannot be updated: {sorted(unknown)!r}")
    return dict(assignments)


__all__ = [
    "CadenceFilter",
    "CadenceItem",
    "ItemStatus",
    "MUTABLE_FIELDS",
    "ScheduleRequest",
    "truncate_to_day",
    "utc_today",
    "validate_assignments",
]
