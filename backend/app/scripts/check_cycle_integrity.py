"""CLI utility to run periodic record and cycle consistency checks."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from ..database import session_scope
from ..services.data_consistency import DataConsistencyService

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Check that record payments add up, records sit inside their cycle "
            "and cycles do not overlap. Suitable for cron jobs."
        )
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every offending record or cycle pair.",
    )
    return parser.parse_args(argv)


def _log_findings(label: str, items: list) -> None:
    if not items:
        LOGGER.info("%s: none", label)
        return
    LOGGER.warning("%s: %s", label, len(items))
    for item in items:
        LOGGER.debug("%s detail: %s", label, item)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    with session_scope() as db:
        snapshot = DataConsistencyService.cycle_integrity(db)

    _log_findings("Records whose payments do not match the price", snapshot.payment_mismatches)
    _log_findings("Records dated outside their cycle", snapshot.records_outside_cycle)
    _log_findings("Records without a cycle", snapshot.records_without_cycle)
    _log_findings("Records without payments", snapshot.records_without_payments)
    _log_findings("Records with invalid dates", snapshot.records_with_invalid_date)
    _log_findings("Overlapping cycle pairs", snapshot.overlapping_cycles)

    LOGGER.info("Consistency check finished")
    return 0 if snapshot.is_clean else 1


if __name__ == "__main__":
    raise SystemExit(main())
