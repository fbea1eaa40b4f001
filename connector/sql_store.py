"""SQLAlchemy-backed cadence store.

Rows are soft-deleted: ``delete`` stamps ``deleted_at`` and every other
operation ignores stamped rows, so removed items stay available for audit.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterator, List, Mapping, Optional, Sequence, TypeVar

import sqlalchemy as sa
from sqlalchemy import Boolean, Date, DateTime, Integer, String, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from cadence.errors import PersistenceError
from cadence.models import CadenceFilter, CadenceItem, ItemStatus, validate_assignments

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class CadenceItemRow(Base):
    """ORM mapping for the ``cadence_items`` table."""

    __tablename__ = "cadence_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    patient_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    practice_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    test_order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    cadence_date: Mapped[date] = mapped_column(Date, nullable=False)
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    blood_collection_method: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    blood_collection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    item_status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ItemStatus.FUTURE, index=True
    )
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    @classmethod
    def from_item(cls, item: CadenceItem) -> "CadenceItemRow":
        return cls(
            patient_id=item.patient_id,
            practice_id=item.practice_id,
            test_order_id=item.test_order_id,
            cadence_date=item.cadence_date,
            order_date=item.order_date,
            blood_collection_method=item.blood_collection_method,
            blood_collection_date=item.blood_collection_date,
            active=item.active,
            item_status=item.item_status,
            published=item.published,
        )

    def to_item(self) -> CadenceItem:
        return CadenceItem(
            id=self.id,
            patient_id=self.patient_id,
            practice_id=self.practice_id,
            test_order_id=self.test_order_id,
            cadence_date=self.cadence_date,
            order_date=self.order_date,
            blood_collection_method=self.blood_collection_method,
            blood_collection_date=self.blood_collection_date,
            active=self.active,
            item_status=self.item_status,
            published=self.published,
        )


def create_schema(engine: Engine) -> None:
    """Create the cadence tables if they do not exist yet."""

    Base.metadata.create_all(engine)


def _conditions(criteria: CadenceFilter) -> List[Any]:
    conditions: List[Any] = [CadenceItemRow.deleted_at.is_(None)]
    if criteria.ids is not None:
        conditions.append(CadenceItemRow.id.in_(sorted(criteria.ids)))
    if criteria.patient_id is not None:
        conditions.append(CadenceItemRow.patient_id == criteria.patient_id)
    if criteria.practice_id is not None:
        conditions.append(CadenceItemRow.practice_id == criteria.practice_id)
    if criteria.status is not None:
        conditions.append(CadenceItemRow.item_status == criteria.status)
    if criteria.exclude_status is not None:
        conditions.append(CadenceItemRow.item_status != criteria.exclude_status)
    if criteria.published is not None:
        conditions.append(CadenceItemRow.published.is_(criteria.published))
    if criteria.method is not None:
        conditions.append(CadenceItemRow.blood_collection_method == criteria.method)
    if criteria.date_from is not None:
        conditions.append(CadenceItemRow.cadence_date >= criteria.date_from)
    if criteria.date_to is not None:
        conditions.append(CadenceItemRow.cadence_date <= criteria.date_to)
    return conditions


class SqlCadenceStore:
    """Cadence store over a relational database through SQLAlchemy.

    Outside ``run_in_transaction`` every call runs in its own short transaction.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        session_factory: Optional[sessionmaker[Session]] = None,
        session: Optional[Session] = None,
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory or sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._session = session

    @classmethod
    def from_url(cls, url: str, **engine_options: Any) -> "SqlCadenceStore":
        engine = sa.create_engine(url, **engine_options)
        create_schema(engine)
        return cls(engine)

    @contextmanager
    def _session_scope(self, operation: str) -> Iterator[Session]:
        if self._session is not None:
            try:
                yield self._session
            except SQLAlchemyError as exc:
                raise PersistenceError(operation, str(exc), cause=exc) from exc
            return

        try:
            with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("Cadence store %s failed: %s", operation, exc)
            raise PersistenceError(operation, str(exc), cause=exc) from exc

    def find(self, criteria: CadenceFilter) -> List[CadenceItem]:
        statement = (
            select(CadenceItemRow)
            .where(*_conditions(criteria))
            .order_by(CadenceItemRow.cadence_date.asc(), CadenceItemRow.id.asc())
        )
        with self._session_scope("find") as session:
            return [row.to_item() for row in session.scalars(statement)]

    def create(self, items: Sequence[CadenceItem]) -> List[CadenceItem]:
        rows = [CadenceItemRow.from_item(item) for item in items]
        with self._session_scope("insert") as session:
            session.add_all(rows)
            session.flush()
            return [row.to_item() for row in rows]

    def update(self, criteria: CadenceFilter, assignments: Mapping[str, Any]) -> int:
        values = validate_assignments(assignments)
        values["updated_at"] = _utc_now()
        statement = (
            sa.update(CadenceItemRow)
            .where(*_conditions(criteria))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._session_scope("update") as session:
            return session.execute(statement).rowcount

    def delete(self, criteria: CadenceFilter) -> int:
        now = _utc_now()
        statement = (
            sa.update(CadenceItemRow)
            .where(*_conditions(criteria))
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._session_scope("delete") as session:
            return session.execute(statement).rowcount

    def run_in_transaction(self, unit_of_work: Callable[["SqlCadenceStore"], T]) -> T:
        if self._session is not None:
            with self._session.begin_nested():
                return unit_of_work(self)

        with self._session_scope("transaction") as session:
            return unit_of_work(
                SqlCadenceStore(self._engine, session_factory=self._session_factory, session=session)
            )


__all__ = ["Base", "CadenceItemRow", "SqlCadenceStore", "create_schema"]
