"""Batch repair that reassigns records to the cycle matching their date."""

from __future__ import annotations

import logging
import os
import threading
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..schemas import MigrationReport
from .backups import BackupError, create_backup
from .cycles import CycleService, match_cycles, parse_calendar_date
from .errors import (
    AmbiguousCycleError,
    IntegrityAbortError,
    MigrationConfigurationError,
    MigrationInProgressError,
    RecordServiceError,
)
from .statistics import STATS_CACHE

LOGGER = logging.getLogger(__name__)

ERROR_THRESHOLD_ENV = "CYCLE_MIGRATION_ERROR_THRESHOLD"
DEFAULT_ERROR_THRESHOLD = 0.10

MIGRATION_WRITE_GATE = threading.Lock()


def ensure_writes_allowed() -> None:
    """Refuse record writes while a migration run holds the write gate."""

    if MIGRATION_WRITE_GATE.locked():
        raise MigrationInProgressError(
            "A cycle migration is running; retry once it has finished"
        )


def resolve_error_threshold(value: Optional[float] = None) -> float:
    if value is None:
        raw = os.getenv(ERROR_THRESHOLD_ENV)
        if not raw:
            return DEFAULT_ERROR_THRESHOLD
        try:
            value = float(raw)
        except ValueError as exc:
            raise MigrationConfigurationError(f"{ERROR_THRESHOLD_ENV} must be a number") from exc
    if not 0 <= value <= 1:
        raise MigrationConfigurationError("Error threshold must be between 0 and 1")
    return value


def _malformed_reason(raw: Optional[str]) -> str:
    if raw is None or not str(raw).strip():
        return "missing_date"
    return "invalid_format"


class CycleMigrationService:
    """Reassign every record to the cycle whose date range contains it."""

    @staticmethod
    def _backup(db: Session, require_backup: bool) -> Optional[str]:
        database_url = db.get_bind().url.render_as_string(hide_password=False)
        try:
            backup_path = create_backup("cycle_migration", database_url)
        except BackupError as exc:
            if require_backup:
                raise
            LOGGER.warning("Could not create backup, continuing without one: %s", exc)
            return None
        if backup_path is None:
            if require_backup:
                raise BackupError("A backup is required but this database cannot be backed up")
            LOGGER.warning("Continuing without backup")
            return None
        return str(backup_path)

    @classmethod
    def run(
        cls,
        db: Session,
        *,
        dry_run: bool = False,
        error_threshold: Optional[float] = None,
        require_backup: bool = False,
    ) -> MigrationReport:
        """Run one migration pass inside a single transaction.

        Raises ``IntegrityAbortError`` (after rolling back) when malformed and
        unassignable records together exceed ``error_threshold`` of the total.
        A dry run computes the same report without writing or backing up.
        """

        threshold = resolve_error_threshold(error_threshold)
        if not MIGRATION_WRITE_GATE.acquire(blocking=False):
            raise MigrationInProgressError("A cycle migration is already running")
        try:
            backup_path = None if dry_run else cls._backup(db, require_backup)
            return cls._migrate(db, threshold=threshold, dry_run=dry_run, backup_path=backup_path)
        finally:
            MIGRATION_WRITE_GATE.release()

    @classmethod
    def _migrate(
        cls,
        db: Session,
        *,
        threshold: float,
        dry_run: bool,
        backup_path: Optional[str],
    ) -> MigrationReport:
        records = db.query(models.Record).order_by(models.Record.id).all()
        cycles = db.query(models.Cycle).all()
        overlaps = CycleService.overlapping_pairs(cycles)
        if overlaps:
            LOGGER.warning(
                "Found %s overlapping cycle pair(s); records in the overlap are resolved by tie-break",
                len(overlaps),
            )

        moved: list[schemas.MovedRecord] = []
        malformed: list[schemas.MalformedRecord] = []
        unassignable: list[schemas.UnassignableRecord] = []
        ambiguous: list[schemas.AmbiguousRecord] = []
        unchanged = 0

        for record in records:
            day = parse_calendar_date(record.occurred_on)
            if day is None:
                reason = _malformed_reason(record.occurred_on)
                LOGGER.warning(
                    "Record %s (%s) has an unusable date %r: %s",
                    record.id,
                    record.name,
                    record.occurred_on,
                    reason,
                )
                malformed.append(
                    schemas.MalformedRecord(
                        record_id=record.id,
                        name=record.name,
                        raw_date=record.occurred_on,
                        reason=reason,
                    )
                )
                continue

            matches = match_cycles(cycles, day)
            if not matches:
                LOGGER.warning(
                    "Record %s (%s) dated %s does not fall within any cycle",
                    record.id,
                    record.name,
                    day,
                )
                unassignable.append(
                    schemas.UnassignableRecord(
                        record_id=record.id,
                        name=record.name,
                        date=day,
                        current_cycle_id=record.cycle_id,
                    )
                )
                continue

            try:
                target = CycleService.require_single(matches)
            except AmbiguousCycleError as exc:
                outcome = CycleService.tie_break(exc.candidates, record.cycle_id)
                target = outcome.cycle
                log = LOGGER.warning if outcome.needs_review else LOGGER.info
                log(
                    "Record %s (%s) dated %s matches %s cycles; using cycle %s (%s)",
                    record.id,
                    record.name,
                    day,
                    len(exc.candidates),
                    target.id,
                    outcome.resolution,
                )
                ambiguous.append(
                    schemas.AmbiguousRecord(
                        record_id=record.id,
                        name=record.name,
                        date=day,
                        candidates=[
                            schemas.CycleReference(id=cycle.id, name=cycle.name)
                            for cycle in exc.candidates
                        ],
                        chosen_cycle_id=target.id,
                        resolution=outcome.resolution,
                    )
                )

            if record.cycle_id == target.id:
                unchanged += 1
                continue

            LOGGER.info(
                "Moving record %s (%s) dated %s from cycle %s to cycle %s (%s)",
                record.id,
                record.name,
                day,
                record.cycle_id,
                target.id,
                target.name,
            )
            moved.append(
                schemas.MovedRecord(
                    record_id=record.id,
                    name=record.name,
                    date=day,
                    old_cycle_id=record.cycle_id,
                    new_cycle_id=target.id,
                    new_cycle_name=target.name,
                )
            )
            if not dry_run:
                record.cycle_id = target.id

        total = len(records)
        errored = len(malformed) + len(unassignable)
        error_rate = errored / total if total else 0.0
        aborted = error_rate > threshold

        report = MigrationReport(
            total_records=total,
            moved_count=len(moved),
            unchanged_count=unchanged,
            errored_count=errored,
            ambiguous_count=len(ambiguous),
            error_rate=error_rate,
            error_threshold=threshold,
            aborted=aborted,
            dry_run=dry_run,
            committed=False,
            backup_path=backup_path,
            moved=moved,
            malformed=malformed,
            unassignable=unassignable,
            ambiguous=ambiguous,
            overlapping_cycles=overlaps,
        )

        if aborted:
            db.rollback()
            message = (
                f"Error rate {error_rate:.1%} exceeds the {threshold:.1%} threshold "
                f"({errored} of {total} records); no changes were applied"
            )
            if dry_run:
                LOGGER.warning("Dry run would abort: %s", message)
                return report
            LOGGER.error("Cycle migration aborted: %s", message)
            raise IntegrityAbortError(message, report)

        if dry_run:
            db.rollback()
            LOGGER.info("Dry run finished: %s record(s) would move", len(moved))
            return report

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            LOGGER.exception("Cycle migration failed to commit")
            raise RecordServiceError("Unable to commit cycle migration.") from exc

        STATS_CACHE.clear()
        report.committed = True
        LOGGER.info(
            "Cycle migration committed: %s moved, %s unchanged, %s errored, %s ambiguous",
            report.moved_count,
            report.unchanged_count,
            report.errored_count,
            report.ambiguous_count,
        )
        return report
