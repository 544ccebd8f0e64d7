from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .cycle import CycleOverlap


class PaymentSumMismatch(BaseModel):
    record_id: int = Field(..., description="Record whose payment breakdown does not add up")
    price: Decimal = Field(..., description="Declared record price")
    payments_total: Decimal = Field(..., description="Sum of the captured payments")

    model_config = ConfigDict(from_attributes=True)


class OutOfRangeRecord(BaseModel):
    record_id: int = Field(..., description="Record dated outside its cycle")
    cycle_id: int
    raw_date: Optional[str] = Field(None, description="Date stored on the record")

    model_config = ConfigDict(from_attributes=True)


class CycleIntegrityReport(BaseModel):
    payment_mismatches: list[PaymentSumMismatch]
    records_outside_cycle: list[OutOfRangeRecord]
    records_without_cycle: list[int]
    records_without_payments: list[int]
    records_with_invalid_date: list[int]
    overlapping_cycles: list[CycleOverlap]

    model_config = ConfigDict(from_attributes=True)
