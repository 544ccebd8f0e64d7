"""Schemas describing per-stylist cycle statistics."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from .cycle import CycleRead


class CycleStats(BaseModel):
    """Totals for one stylist inside one cycle."""

    user_id: int
    stylist_name: str
    total_service_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_product_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_tips: Decimal = Field(default=Decimal("0.00"), ge=0)
    service_count: int = Field(default=0, ge=0)
    product_count: int = Field(default=0, ge=0)
    payment_totals: dict[str, Decimal] = Field(
        default_factory=dict, description="Amount collected per payment method"
    )


class CycleTotals(BaseModel):
    """Cycle-wide totals across every stylist."""

    total_service_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_product_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    total_tips: Decimal = Field(default=Decimal("0.00"), ge=0)
    service_count: int = Field(default=0, ge=0)
    product_count: int = Field(default=0, ge=0)
    payment_totals: dict[str, Decimal] = Field(default_factory=dict)


class CycleStatsResponse(BaseModel):
    """Statistics for a cycle, one entry per stylist."""

    cycle: CycleRead
    items: list[CycleStats]
    totals: CycleTotals
