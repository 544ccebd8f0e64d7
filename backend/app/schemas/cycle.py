"""Pydantic schemas for reporting cycles."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CycleBase(BaseModel):
    """Shared attributes for cycle operations."""

    name: str = Field(..., min_length=1, max_length=120, description="Display name of the cycle")
    start_date: date = Field(..., description="First day of the cycle (inclusive)")
    end_date: date = Field(..., description="Last day of the cycle (inclusive)")
    notes: Optional[str] = Field(default=None, description="Free form notes for the cycle")


class CycleCreate(CycleBase):
    """Payload used by administrators to open a new cycle."""

    pass


class CycleUpdate(BaseModel):
    """Partial update for an existing cycle."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None


class CycleRead(CycleBase):
    """Cycle representation returned by the API."""

    id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CycleListResponse(BaseModel):
    """List of cycles, newest first."""

    items: list[CycleRead]
    total: int = Field(..., ge=0)


class CycleOverlap(BaseModel):
    """Two cycles whose date ranges intersect."""

    first_cycle_id: int
    first_cycle_name: str
    second_cycle_id: int
    second_cycle_name: str
    overlap_start: date
    overlap_end: date
