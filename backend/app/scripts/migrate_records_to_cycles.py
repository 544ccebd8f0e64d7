"""CLI utility that reassigns every record to the cycle matching its date."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from .. import schemas
from ..database import SessionLocal
from ..services.backups import BackupError
from ..services.cycle_migration import CycleMigrationService
from ..services.errors import (
    IntegrityAbortError,
    MigrationConfigurationError,
    MigrationInProgressError,
    RecordServiceError,
)

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Move services and products to the cycle whose date range contains their date. "
            "Runs in a single transaction after taking a database backup."
        )
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report the changes without writing them or taking a backup.",
    )
    parser.add_argument(
        "--require-backup",
        action="store_true",
        help="Abort before touching data when a backup cannot be created.",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Maximum share of malformed or unassignable records before aborting (default 0.10).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every moved, ambiguous and skipped record.",
    )
    return parser.parse_args(argv)


def _log_section(label: str, items: list) -> None:
    if not items:
        return
    LOGGER.warning("%s: %s", label, len(items))
    for item in items:
        LOGGER.debug("  %s", item.model_dump(mode="json"))


def print_summary(report: schemas.MigrationReport) -> None:
    """Log the migration summary and the records that need manual review."""

    LOGGER.info("=" * 60)
    LOGGER.info("Migration summary%s", " (dry run)" if report.dry_run else "")
    LOGGER.info("=" * 60)
    LOGGER.info("Total records checked: %s", report.total_records)
    LOGGER.info("Moved to the correct cycle: %s", report.moved_count)
    LOGGER.info("Already in the correct cycle: %s", report.unchanged_count)
    LOGGER.info("Errors (malformed or unassignable): %s", report.errored_count)
    LOGGER.info("Matched multiple cycles: %s", report.ambiguous_count)
    LOGGER.info(
        "Error rate: %.1f%% (threshold %.1f%%)",
        report.error_rate * 100,
        report.error_threshold * 100,
    )
    if report.backup_path:
        LOGGER.info("Backup: %s", report.backup_path)

    for move in report.moved:
        LOGGER.debug(
            "Moved record %s (%s) dated %s: cycle %s -> %s (%s)",
            move.record_id,
            move.name,
            move.date,
            move.old_cycle_id,
            move.new_cycle_id,
            move.new_cycle_name,
        )
    _log_section("Overlapping cycle pairs", report.overlapping_cycles)
    _log_section("Records with missing or malformed dates", report.malformed)
    _log_section("Records outside every cycle", report.unassignable)
    _log_section("Records matching multiple cycles", report.ambiguous)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    db = SessionLocal()
    try:
        report = CycleMigrationService.run(
            db,
            dry_run=args.dry_run,
            error_threshold=args.threshold,
            require_backup=args.require_backup,
        )
    except IntegrityAbortError as exc:
        print_summary(exc.report)
        LOGGER.error("%s", exc)
        if exc.report.backup_path:
            LOGGER.error("Restore from %s if needed", exc.report.backup_path)
        return EXIT_ABORTED
    except (
        BackupError,
        MigrationConfigurationError,
        MigrationInProgressError,
        RecordServiceError,
    ) as exc:
        LOGGER.error("Migration failed: %s", exc)
        return EXIT_FAILED
    finally:
        db.close()

    print_summary(report)
    if report.aborted:
        LOGGER.warning("A real run would abort with the current error rate")
    LOGGER.info("Migration finished")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
