"""Administrator-only views: aggregated stats, repairs and user management."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import require_admin
from ..services import (
    CycleMigrationService,
    DataConsistencyService,
    RecordService,
    StatisticsService,
    UserService,
)
from .errors import service_errors

LOGGER = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/cycles/{cycle_id}/stats", response_model=schemas.CycleStatsResponse)
def read_cycle_stats(
    cycle_id: int,
    user_id: Optional[int] = Query(None, description="Restrict the stats to one stylist"),
    db: Session = Depends(get_db),
) -> schemas.CycleStatsResponse:
    with service_errors():
        return StatisticsService.get_cycle_summary(db, cycle_id, user_id)


@router.get(
    "/users/{user_id}/cycles/{cycle_id}/records",
    response_model=list[schemas.RecordRead],
)
def list_user_records(
    user_id: int,
    cycle_id: int,
    kind: Optional[models.RecordKind] = Query(None, description="service or product"),
    db: Session = Depends(get_db),
) -> list[schemas.RecordRead]:
    with service_errors():
        records = RecordService.list_records_by_user(db, user_id, cycle_id, kind)
    return [schemas.RecordRead.model_validate(record) for record in records]


@router.post("/cycle-migration", response_model=schemas.MigrationReport)
def run_cycle_migration(
    dry_run: bool = Query(False, description="Compute the report without writing"),
    require_backup: bool = Query(False, description="Abort when no backup can be taken"),
    db: Session = Depends(get_db),
) -> schemas.MigrationReport:
    """Reassign records to the cycle matching their date in one transaction."""

    LOGGER.info("Cycle migration requested (dry_run=%s)", dry_run)
    with service_errors():
        return CycleMigrationService.run(db, dry_run=dry_run, require_backup=require_backup)


@router.get("/integrity", response_model=schemas.CycleIntegrityReport)
def read_integrity_report(db: Session = Depends(get_db)) -> schemas.CycleIntegrityReport:
    snapshot = DataConsistencyService.cycle_integrity(db)
    return schemas.CycleIntegrityReport.model_validate(snapshot)


@router.post("/users", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def create_user(user_in: schemas.UserCreate, db: Session = Depends(get_db)) -> schemas.UserRead:
    with service_errors():
        return UserService.create_user(db, user_in)


@router.get("/users", response_model=list[schemas.UserRead])
def list_users(
    role: Optional[models.UserRole] = Query(None, description="Filter by role"),
    db: Session = Depends(get_db),
) -> list[schemas.UserRead]:
    return UserService.list_users(db, role)
