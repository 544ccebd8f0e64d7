"""Schemas for the cycle migration/repair report."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .cycle import CycleOverlap


class CycleReference(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class MovedRecord(BaseModel):
    record_id: int
    name: str
    date: date
    old_cycle_id: Optional[int] = None
    new_cycle_id: int
    new_cycle_name: str

    model_config = ConfigDict(from_attributes=True)


class MalformedRecord(BaseModel):
    record_id: int
    name: str
    raw_date: Optional[str] = None
    reason: str

    model_config = ConfigDict(from_attributes=True)


class UnassignableRecord(BaseModel):
    record_id: int
    name: str
    date: date
    current_cycle_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AmbiguousRecord(BaseModel):
    record_id: int
    name: str
    date: date
    candidates: list[CycleReference]
    chosen_cycle_id: int
    resolution: str = Field(..., description="current_assignment or earliest_match")

    model_config = ConfigDict(from_attributes=True)


class MigrationReport(BaseModel):
    """Structured summary emitted by a migration run."""

    total_records: int = Field(..., ge=0)
    moved_count: int = Field(..., ge=0)
    unchanged_count: int = Field(..., ge=0)
    errored_count: int = Field(..., ge=0)
    ambiguous_count: int = Field(..., ge=0)
    error_rate: float = Field(..., ge=0)
    error_threshold: float = Field(..., ge=0)
    aborted: bool = Field(False, description="Error rate exceeded the threshold")
    dry_run: bool
    committed: bool
    backup_path: Optional[str] = None
    moved: list[MovedRecord]
    malformed: list[MalformedRecord]
    unassignable: list[UnassignableRecord]
    ambiguous: list[AmbiguousRecord]
    overlapping_cycles: list[CycleOverlap]

    model_config = ConfigDict(from_attributes=True)
