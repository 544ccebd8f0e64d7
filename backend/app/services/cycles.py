"""Service helpers to manage reporting cycles."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from .errors import (
    AmbiguousCycleError,
    CycleInUseError,
    CycleNotFoundError,
    RecordServiceError,
    RecordValidationError,
)

LOGGER = logging.getLogger(__name__)

CALENDAR_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_OF_DAY_PATTERN = re.compile(
    r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d(\.\d{1,6})?)?(Z|[+-]([01]\d|2[0-3]):?[0-5]\d)?$"
)


def parse_calendar_date(raw: object) -> Optional[date]:
    """Normalize a stored record date into a calendar date.

    Accepts ``date``/``datetime`` objects, ``YYYY-MM-DD`` strings and ISO
    datetimes separated by ``T`` or a space. The time part, when present, must
    be ``HH:MM[:SS[.ffffff]]`` with an optional ``Z`` or ``+HH:MM`` offset.
    Returns ``None`` when the value is missing or cannot be read as a real
    calendar date.
    """

    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    time_part = None
    for separator in ("T", " "):
        if separator in text:
            text, time_part = text.split(separator, 1)
            break
    if time_part is not None and not TIME_OF_DAY_PATTERN.match(time_part):
        return None
    if not CALENDAR_DATE_PATTERN.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def chronological_key(cycle: models.Cycle) -> tuple[date, date, int]:
    return cycle.start_date, cycle.end_date, cycle.id or 0


def match_cycles(cycles: Iterable[models.Cycle], day: date) -> list[models.Cycle]:
    """Return every cycle whose inclusive range contains ``day``, oldest first."""

    return sorted(
        (cycle for cycle in cycles if cycle.start_date <= day <= cycle.end_date),
        key=chronological_key,
    )


@dataclass(frozen=True)
class TieBreak:
    """Outcome of choosing one cycle among several matches."""

    cycle: models.Cycle
    resolution: str
    needs_review: bool


class CycleService:
    """Operations for creating, resolving and maintaining cycles."""

    RESOLVED_TO_CURRENT = "current_assignment"
    RESOLVED_TO_EARLIEST = "earliest_match"

    @staticmethod
    def _validate_range(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise RecordValidationError(
                "invalid_range",
                "Cycle start date must be on or before its end date",
                field="start_date",
            )

    @classmethod
    def create_cycle(cls, db: Session, data: schemas.CycleCreate) -> models.Cycle:
        cls._validate_range(data.start_date, data.end_date)
        cycle = models.Cycle(
            name=data.name.strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            notes=data.notes,
        )
        try:
            db.add(cycle)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RecordServiceError("Unable to create cycle at this time.") from exc
        db.refresh(cycle)

        overlaps = [
            other
            for other in cls.find_overlapping(db, cycle.start_date, cycle.end_date)
            if other.id != cycle.id
        ]
        if overlaps:
            LOGGER.warning(
                "Cycle %s (%s) overlaps %s existing cycle(s)",
                cycle.id,
                cycle.name,
                len(overlaps),
                extra={"cycle_id": cycle.id, "overlaps": [other.id for other in overlaps]},
            )
        return cycle

    @staticmethod
    def get_cycle(db: Session, cycle_id: int) -> models.Cycle:
        cycle = db.get(models.Cycle, cycle_id)
        if cycle is None:
            raise CycleNotFoundError(f"Cycle {cycle_id} not found")
        return cycle

    @staticmethod
    def list_cycles(db: Session) -> list[models.Cycle]:
        return (
            db.query(models.Cycle)
            .order_by(models.Cycle.start_date.desc(), models.Cycle.id.desc())
            .all()
        )

    @classmethod
    def update_cycle(
        cls, db: Session, cycle_id: int, data: schemas.CycleUpdate
    ) -> models.Cycle:
        cycle = cls.get_cycle(db, cycle_id)
        changes = data.model_dump(exclude_unset=True)

        start_date = changes.get("start_date") or cycle.start_date
        end_date = changes.get("end_date") or cycle.end_date
        cls._validate_range(start_date, end_date)

        if changes.get("name") is not None:
            cycle.name = changes["name"].strip()
        if "notes" in changes:
            cycle.notes = changes["notes"]
        cycle.start_date = start_date
        cycle.end_date = end_date

        try:
            db.add(cycle)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RecordServiceError("Unable to update cycle at this time.") from exc
        db.refresh(cycle)
        return cycle

    @classmethod
    def delete_cycle(cls, db: Session, cycle_id: int) -> None:
        cycle = cls.get_cycle(db, cycle_id)
        in_use = (
            db.query(models.Record.id)
            .filter(models.Record.cycle_id == cycle.id)
            .first()
            is not None
        )
        if in_use:
            raise CycleInUseError(
                f"Cycle {cycle.id} still has records; reassign or delete them first"
            )
        try:
            db.delete(cycle)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise RecordServiceError("Unable to delete cycle at this time.") from exc

    @staticmethod
    def find_containing(db: Session, day: date) -> list[models.Cycle]:
        """Return all cycles containing ``day``; overlaps yield several entries."""

        return (
            db.query(models.Cycle)
            .filter(models.Cycle.start_date <= day, models.Cycle.end_date >= day)
            .order_by(models.Cycle.start_date, models.Cycle.end_date, models.Cycle.id)
            .all()
        )

    @staticmethod
    def find_overlapping(db: Session, start_date: date, end_date: date) -> list[models.Cycle]:
        return (
            db.query(models.Cycle)
            .filter(models.Cycle.start_date <= end_date, models.Cycle.end_date >= start_date)
            .order_by(models.Cycle.start_date, models.Cycle.id)
            .all()
        )

    @classmethod
    def resolve_current(cls, db: Session, today: Optional[date] = None) -> Optional[models.Cycle]:
        """Return the cycle active on ``today``.

        With several matches the cycle that started most recently wins, and the
        most recently created one breaks a tie on start date.
        """

        reference = today or date.today()
        matches = cls.find_containing(db, reference)
        if not matches:
            return None
        if len(matches) > 1:
            chosen = max(matches, key=lambda cycle: (cycle.start_date, cycle.id))
            LOGGER.warning(
                "%s cycles contain %s; selecting cycle %s (%s)",
                len(matches),
                reference,
                chosen.id,
                chosen.name,
            )
            return chosen
        return matches[0]

    @staticmethod
    def require_single(matches: Sequence[models.Cycle]) -> models.Cycle:
        """Return the only match or raise ``AmbiguousCycleError``."""

        if len(matches) > 1:
            raise AmbiguousCycleError(matches)
        if not matches:
            raise CycleNotFoundError("No cycle contains the requested date")
        return matches[0]

    @classmethod
    def tie_break(
        cls, candidates: Sequence[models.Cycle], current_cycle_id: Optional[int]
    ) -> TieBreak:
        """Choose one cycle among overlapping matches.

        The record's current cycle wins when it is among the candidates;
        otherwise the chronologically first candidate is chosen and flagged
        for manual review.
        """

        if current_cycle_id is not None:
            for cycle in candidates:
                if cycle.id == current_cycle_id:
                    return TieBreak(cycle=cycle, resolution=cls.RESOLVED_TO_CURRENT, needs_review=False)
        earliest = min(candidates, key=chronological_key)
        return TieBreak(cycle=earliest, resolution=cls.RESOLVED_TO_EARLIEST, needs_review=True)

    @staticmethod
    def overlapping_pairs(cycles: Iterable[models.Cycle]) -> list[schemas.CycleOverlap]:
        ordered = sorted(cycles, key=chronological_key)
        pairs: list[schemas.CycleOverlap] = []
        for index, first in enumerate(ordered):
            for second in ordered[index + 1 :]:
                if second.start_date > first.end_date:
                    break
                pairs.append(
                    schemas.CycleOverlap(
                        first_cycle_id=first.id,
                        first_cycle_name=first.name,
                        second_cycle_id=second.id,
                        second_cycle_name=second.name,
                        overlap_start=max(first.start_date, second.start_date),
                        overlap_end=min(first.end_date, second.end_date),
                    )
                )
        return pairs

    @classmethod
    def detect_overlaps(cls, db: Session) -> list[schemas.CycleOverlap]:
        return cls.overlapping_pairs(db.query(models.Cycle).all())
