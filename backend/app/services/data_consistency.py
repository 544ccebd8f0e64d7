"""Utilities to surface integrity issues across records and cycles."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models, schemas
from .cycles import CycleService, parse_calendar_date


@dataclass(frozen=True)
class PaymentSumMismatch:
    """A record whose payment rows do not add up to its price."""

    record_id: int
    price: Decimal
    payments_total: Decimal


@dataclass(frozen=True)
class OutOfRangeRecord:
    """A record dated outside the range of the cycle it belongs to."""

    record_id: int
    cycle_id: int
    raw_date: Optional[str]


@dataclass(frozen=True)
class CycleIntegritySnapshot:
    """Aggregated inconsistencies detected across records and cycles."""

    payment_mismatches: list[PaymentSumMismatch]
    records_outside_cycle: list[OutOfRangeRecord]
    records_without_cycle: list[int]
    records_without_payments: list[int]
    records_with_invalid_date: list[int]
    overlapping_cycles: list[schemas.CycleOverlap]

    @property
    def is_clean(self) -> bool:
        return not any(
            (
                self.payment_mismatches,
                self.records_outside_cycle,
                self.records_without_cycle,
                self.records_without_payments,
                self.records_with_invalid_date,
                self.overlapping_cycles,
            )
        )


class DataConsistencyService:
    """Data reconciliation helpers to surface integrity issues."""

    @staticmethod
    def _payment_sums(db: Session) -> dict[int, Decimal]:
        rows = (
            db.query(models.RecordPayment.record_id, func.sum(models.RecordPayment.amount))
            .group_by(models.RecordPayment.record_id)
            .all()
        )
        return {int(record_id): total for record_id, total in rows if record_id is not None}

    @classmethod
    def cycle_integrity(cls, db: Session) -> CycleIntegritySnapshot:
        """Check every stored record against its payments and its cycle."""

        sums = cls._payment_sums(db)
        cycles = {cycle.id: cycle for cycle in db.query(models.Cycle).all()}

        mismatches: list[PaymentSumMismatch] = []
        outside: list[OutOfRangeRecord] = []
        without_cycle: list[int] = []
        without_payments: list[int] = []
        invalid_dates: list[int] = []

        rows = (
            db.query(
                models.Record.id,
                models.Record.price,
                models.Record.cycle_id,
                models.Record.occurred_on,
            )
            .order_by(models.Record.id)
            .all()
        )
        for record_id, price, cycle_id, occurred_on in rows:
            total = sums.get(record_id)
            if total is None:
                without_payments.append(record_id)
            elif total != price:
                mismatches.append(
                    PaymentSumMismatch(record_id=record_id, price=price, payments_total=total)
                )

            day = parse_calendar_date(occurred_on)
            if day is None:
                invalid_dates.append(record_id)

            cycle = cycles.get(cycle_id) if cycle_id is not None else None
            if cycle is None:
                without_cycle.append(record_id)
            elif day is not None and not cycle.contains(day):
                outside.append(
                    OutOfRangeRecord(record_id=record_id, cycle_id=cycle.id, raw_date=occurred_on)
                )

        return CycleIntegritySnapshot(
            payment_mismatches=mismatches,
            records_outside_cycle=outside,
            records_without_cycle=without_cycle,
            records_without_payments=without_payments,
            records_with_invalid_date=invalid_dates,
            overlapping_cycles=CycleService.overlapping_pairs(cycles.values()),
        )
