"""Generation of a bounded series of cadence items."""
from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from .errors import InvalidArgumentError
from .models import CadenceItem, DateLike, ItemStatus, truncate_to_day


def add_one_year(day: date) -> date:
    """Return the same calendar day one year later.

    29 February has no counterpart in a common year and rolls over to 1 March.
    """

    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        return date(day.year + 1, 3, 1)


def generate_series(
    patient_id: int,
    cadence_days: int,
    start_date: DateLike,
    *,
    test_order_id: Optional[int] = None,
    practice_id: Optional[int] = None,
    method: str = "",
) -> List[CadenceItem]:
    """Build draft items every ``cadence_days`` days for one year after ``start_date``.

    The first item falls ``cadence_days`` after the start; the last one is the
    latest date not beyond the one-year horizon (the horizon itself counts).
    """

    if isinstance(cadence_days, bool) or not isinstance(cadence_days, int) or cadence_days <= 0:
        raise InvalidArgumentError(f"cadence_days must be a positive integer, got {cadence_days!r}")

    start = truncate_to_day(start_date)
    step = timedelta(days=cadence_days)
    horizon = add_one_year(start)

    items: List[CadenceItem] = []
    current = start + step
    while current <= horizon:
        items.append(
            CadenceItem(
                patient_id=patient_id,
                practice_id=practice_id,
                test_order_id=test_order_id,
                cadence_date=current,
                blood_collection_method=method,
                item_status=ItemStatus.FUTURE,
                active=False,
                published=False,
            )
        )
        current += step
    return items


__all__ = ["add_one_year", "generate_series"]
