"""Service layer for services and products logged against cycles."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..security import Identity
from .cycle_migration import ensure_writes_allowed
from .cycles import CycleService, parse_calendar_date
from .errors import (
    RecordNotFoundError,
    RecordPermissionError,
    RecordServiceError,
    RecordValidationError,
)
from .payment_validation import NormalizedPayment, PaymentValidator
from .statistics import STATS_CACHE
from .users import UserService

LOGGER = logging.getLogger(__name__)

RECORD_CLASSES = {
    models.RecordKind.SERVICE: models.ServiceRecord,
    models.RecordKind.PRODUCT: models.ProductRecord,
}


def _build_payments(payments: Sequence[NormalizedPayment]) -> list[models.RecordPayment]:
    return [
        models.RecordPayment(method=entry.method, amount=entry.amount, label=entry.label)
        for entry in payments
    ]


class RecordService:
    """Create, update and query records with their payment breakdowns."""

    @staticmethod
    def _visible_query(db: Session, identity: Identity, kind: Optional[models.RecordKind]):
        query = db.query(models.Record).options(selectinload(models.Record.payments))
        if kind is not None:
            query = query.filter(models.Record.kind == kind)
        if not identity.is_admin:
            query = query.filter(models.Record.user_id == identity.user_id)
        return query

    @classmethod
    def get_record(
        cls,
        db: Session,
        identity: Identity,
        record_id: int,
        kind: Optional[models.RecordKind] = None,
    ) -> models.Record:
        record = (
            cls._visible_query(db, identity, kind)
            .filter(models.Record.id == record_id)
            .first()
        )
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return record

    @staticmethod
    def _parse_date(raw: Optional[str]) -> date:
        day = parse_calendar_date(raw)
        if day is None:
            raise RecordValidationError(
                "invalid_date",
                f"Date {raw!r} is not a valid YYYY-MM-DD date or ISO datetime",
                field="date",
            )
        return day

    @staticmethod
    def _validate_tip(kind: models.RecordKind, tip) -> Optional[int]:
        if tip is None:
            return None
        if kind == models.RecordKind.PRODUCT:
            raise RecordValidationError(
                "tip_not_allowed", "Only services can carry a tip", field="tip"
            )
        return PaymentValidator.amount_to_cents(tip, "tip")

    @staticmethod
    def _check_cycle_range(identity: Identity, cycle: models.Cycle, day: date) -> None:
        if identity.is_admin:
            return
        if not cycle.contains(day):
            raise RecordValidationError(
                "date_outside_cycle",
                f"Date {day.isoformat()} is outside cycle '{cycle.name}' "
                f"({cycle.start_date.isoformat()} to {cycle.end_date.isoformat()})",
                field="date",
            )

    @staticmethod
    def _resolve_owner(db: Session, identity: Identity, user_id: Optional[int]) -> int:
        if user_id is None or user_id == identity.user_id:
            return identity.user_id
        if not identity.is_admin:
            raise RecordPermissionError("Stylists can only log records for themselves")
        return UserService.get_user(db, user_id).id

    @staticmethod
    def _commit(db: Session, action: str) -> None:
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.exception("Failed to %s record", action)
            raise RecordServiceError(f"Unable to {action} record at this time.") from exc

    @classmethod
    def create_record(
        cls,
        db: Session,
        identity: Identity,
        data: schemas.RecordCreate,
        kind: models.RecordKind,
    ) -> models.Record:
        """Validate and persist a record together with its payments.

        The payment breakdown is checked before any cycle lookup. When
        ``cycle_id`` is omitted the cycle containing the record date is used.
        Administrators may file records outside the cycle's date range.
        """

        ensure_writes_allowed()
        owner_id = cls._resolve_owner(db, identity, data.user_id)
        payments = PaymentValidator.validate(data.price, data.payments)
        tip_cents = cls._validate_tip(kind, data.tip)
        day = cls._parse_date(data.date)

        if data.cycle_id is not None:
            cycle = CycleService.get_cycle(db, data.cycle_id)
        else:
            cycle = CycleService.resolve_current(db, day)
            if cycle is None:
                raise RecordValidationError(
                    "cycle_required",
                    f"No cycle contains {day.isoformat()}; pass cycle_id explicitly",
                    field="cycle_id",
                )
        cls._check_cycle_range(identity, cycle, day)

        record = RECORD_CLASSES[kind](
            user_id=owner_id,
            cycle_id=cycle.id,
            name=data.name.strip(),
            customer=data.customer if kind == models.RecordKind.SERVICE else None,
            price=data.price,
            tip=data.tip if tip_cents is not None else None,
            occurred_on=data.date,
            notes=data.notes,
            payments=_build_payments(payments),
        )
        db.add(record)
        cls._commit(db, "create")
        db.refresh(record)

        STATS_CACHE.invalidate(cycle.id, owner_id)
        LOGGER.info(
            "Created %s record %s for user %s in cycle %s",
            kind.value,
            record.id,
            owner_id,
            cycle.id,
            extra={"record_id": record.id, "cycle_id": cycle.id, "user_id": owner_id},
        )
        return record

    @classmethod
    def update_record(
        cls,
        db: Session,
        identity: Identity,
        record_id: int,
        data: schemas.RecordUpdate,
        kind: Optional[models.RecordKind] = None,
    ) -> models.Record:
        """Apply a partial update and re-validate the whole record."""

        ensure_writes_allowed()
        record = cls.get_record(db, identity, record_id, kind)
        changes = data.model_dump(exclude_unset=True)
        old_cycle_id = record.cycle_id

        target_cycle_id = changes.get("cycle_id") or record.cycle_id
        if target_cycle_id != record.cycle_id and not identity.is_admin:
            raise RecordPermissionError("Only administrators can move a record to another cycle")

        price = data.price if data.price is not None else record.price
        payment_source = data.payments if data.payments is not None else record.payments
        payments = PaymentValidator.validate(price, payment_source)
        tip = changes["tip"] if "tip" in changes else record.tip
        cls._validate_tip(models.RecordKind(record.kind), tip)

        raw_date = data.date if data.date is not None else record.occurred_on
        day = cls._parse_date(raw_date)
        if target_cycle_id is None:
            raise RecordValidationError(
                "cycle_required", "Record is not assigned to a cycle", field="cycle_id"
            )
        cycle = CycleService.get_cycle(db, target_cycle_id)
        cls._check_cycle_range(identity, cycle, day)

        if data.name is not None:
            record.name = data.name.strip()
        if "customer" in changes:
            record.customer = changes["customer"]
        if "notes" in changes:
            record.notes = changes["notes"]
        record.price = price
        record.tip = tip
        record.occurred_on = raw_date
        record.cycle_id = cycle.id
        if data.payments is not None:
            record.payments = _build_payments(payments)

        cls._commit(db, "update")
        db.refresh(record)

        STATS_CACHE.invalidate(old_cycle_id, record.user_id)
        STATS_CACHE.invalidate(cycle.id, record.user_id)
        LOGGER.info(
            "Updated record %s",
            record.id,
            extra={"record_id": record.id, "cycle_id": cycle.id, "previous_cycle_id": old_cycle_id},
        )
        return record

    @classmethod
    def delete_record(
        cls,
        db: Session,
        identity: Identity,
        record_id: int,
        kind: Optional[models.RecordKind] = None,
    ) -> None:
        ensure_writes_allowed()
        record = cls.get_record(db, identity, record_id, kind)
        cycle_id, user_id = record.cycle_id, record.user_id
        db.delete(record)
        cls._commit(db, "delete")
        STATS_CACHE.invalidate(cycle_id, user_id)
        LOGGER.info(
            "Deleted record %s",
            record_id,
            extra={"record_id": record_id, "cycle_id": cycle_id, "user_id": user_id},
        )

    @classmethod
    def list_records_by_cycle(
        cls,
        db: Session,
        identity: Identity,
        cycle_id: int,
        *,
        kind: Optional[models.RecordKind] = None,
        user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[list[models.Record], int]:
        """Return records of a cycle; stylists only ever see their own."""

        if skip < 0:
            raise ValueError("skip must be greater than or equal to zero")
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        if user_id is not None and user_id != identity.user_id and not identity.is_admin:
            raise RecordPermissionError("Stylists can only list their own records")

        CycleService.get_cycle(db, cycle_id)
        query = cls._visible_query(db, identity, kind).filter(models.Record.cycle_id == cycle_id)
        if user_id is not None:
            query = query.filter(models.Record.user_id == user_id)

        total = query.count()
        items = (
            query.order_by(models.Record.occurred_on.desc(), models.Record.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def list_records_by_user(
        db: Session,
        user_id: int,
        cycle_id: int,
        kind: Optional[models.RecordKind] = None,
    ) -> list[models.Record]:
        UserService.get_user(db, user_id)
        CycleService.get_cycle(db, cycle_id)

        query = (
            db.query(models.Record)
            .options(selectinload(models.Record.payments))
            .filter(models.Record.user_id == user_id, models.Record.cycle_id == cycle_id)
        )
        if kind is not None:
            query = query.filter(models.Record.kind == kind)
        return query.order_by(models.Record.occurred_on.desc(), models.Record.id.desc()).all()
