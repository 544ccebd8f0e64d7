"""Pydantic schemas for services and products logged against cycles."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..models.payment import PaymentMethod
from ..models.record import RecordKind
from .common import PaginatedResponse


def _coerce_record_date(value: Any) -> Any:
    """Accept calendar dates or datetimes and keep them as ISO text."""

    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("Date is required")
        return stripped
    return value


def _strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class PaymentEntry(BaseModel):
    """Represents one payment method inside a record."""

    method: PaymentMethod = Field(..., description="Payment method used")
    amount: Decimal = Field(..., description="Amount paid with this method")
    label: Optional[str] = Field(
        default=None, max_length=120, description="Name of the method when method is 'other'"
    )

    model_config = ConfigDict(from_attributes=True)


class RecordBase(BaseModel):
    """Shared attributes for record operations."""

    name: str = Field(..., min_length=1, max_length=200, description="Service or product name")
    price: Decimal = Field(..., description="Total price charged")
    date: str = Field(
        ...,
        max_length=40,
        description="Calendar date (YYYY-MM-DD) or ISO datetime of the sale",
    )
    notes: Optional[str] = Field(default=None, max_length=500)
    payments: list[PaymentEntry] = Field(
        default_factory=list, description="Breakdown of how the price was paid"
    )

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip_text(value)

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        return _coerce_record_date(value)


class RecordCreate(RecordBase):
    """Payload used when logging a record.

    ``cycle_id`` may be omitted, in which case the cycle containing ``date`` is
    used. ``user_id`` lets administrators log records on behalf of a stylist.
    """

    cycle_id: Optional[int] = Field(default=None, description="Cycle receiving the record")
    user_id: Optional[int] = Field(default=None, description="Owner of the record (admins only)")
    customer: Optional[str] = Field(default=None, max_length=200)
    tip: Optional[Decimal] = Field(default=None, description="Tip received (services only)")


class ServiceCreate(RecordCreate):
    """Schema used when logging a service."""

    pass


class ProductCreate(RecordCreate):
    """Schema used when logging a product sale."""

    pass


class RecordUpdate(BaseModel):
    """Partial update for a record; payments are replaced as a whole."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = None
    tip: Optional[Decimal] = None
    customer: Optional[str] = Field(default=None, max_length=200)
    date: Optional[str] = Field(default=None, max_length=40)
    notes: Optional[str] = Field(default=None, max_length=500)
    cycle_id: Optional[int] = None
    payments: Optional[list[PaymentEntry]] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip_text(value)

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        if value is None:
            return value
        return _coerce_record_date(value)


class RecordRead(BaseModel):
    """Record representation returned by the API."""

    id: int
    kind: RecordKind
    user_id: int
    cycle_id: Optional[int] = None
    name: str
    customer: Optional[str] = None
    price: Decimal
    tip: Optional[Decimal] = None
    date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("occurred_on", "date")
    )
    notes: Optional[str] = None
    payments: list[PaymentEntry] = Field(default_factory=list)
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class RecordListResponse(PaginatedResponse[RecordRead]):
    """Paginated record listing."""

    pass
