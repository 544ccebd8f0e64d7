"""Router exposing reporting cycles."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import Identity, get_current_identity, require_admin
from ..services import CycleService, StatisticsService
from .errors import service_errors

LOGGER = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.get("", response_model=schemas.CycleListResponse)
def list_cycles(db: Session = Depends(get_db)) -> schemas.CycleListResponse:
    """Return every cycle, newest first."""

    cycles = CycleService.list_cycles(db)
    return schemas.CycleListResponse(items=cycles, total=len(cycles))


@router.post(
    "",
    response_model=schemas.CycleRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_cycle(
    cycle_in: schemas.CycleCreate, db: Session = Depends(get_db)
) -> schemas.CycleRead:
    with service_errors():
        cycle = CycleService.create_cycle(db, cycle_in)
    LOGGER.info("Cycle %s created (%s to %s)", cycle.id, cycle.start_date, cycle.end_date)
    return cycle


@router.get("/containing", response_model=list[schemas.CycleRead])
def find_cycles_containing(
    on: date = Query(..., description="Calendar date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
) -> list[schemas.CycleRead]:
    """Return every cycle whose range includes ``on``; overlaps yield several."""

    return CycleService.find_containing(db, on)


@router.get("/current", response_model=schemas.CycleRead)
def read_current_cycle(
    on: Optional[date] = Query(None, description="Reference date, defaults to today"),
    db: Session = Depends(get_db),
) -> schemas.CycleRead:
    cycle = CycleService.resolve_current(db, on)
    if cycle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No cycle contains the requested date",
        )
    return cycle


@router.get("/{cycle_id}", response_model=schemas.CycleRead)
def read_cycle(cycle_id: int, db: Session = Depends(get_db)) -> schemas.CycleRead:
    with service_errors():
        return CycleService.get_cycle(db, cycle_id)


@router.patch(
    "/{cycle_id}",
    response_model=schemas.CycleRead,
    dependencies=[Depends(require_admin)],
)
def update_cycle(
    cycle_id: int,
    cycle_in: schemas.CycleUpdate,
    db: Session = Depends(get_db),
) -> schemas.CycleRead:
    with service_errors():
        return CycleService.update_cycle(db, cycle_id, cycle_in)


@router.delete(
    "/{cycle_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_cycle(cycle_id: int, db: Session = Depends(get_db)) -> Response:
    with service_errors():
        CycleService.delete_cycle(db, cycle_id)
    LOGGER.info("Cycle %s deleted", cycle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{cycle_id}/stats", response_model=schemas.CycleStatsResponse)
def read_cycle_stats(
    cycle_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> schemas.CycleStatsResponse:
    """Stats for the caller; administrators receive one row per stylist."""

    user_id = None if identity.is_admin else identity.user_id
    with service_errors():
        return StatisticsService.get_cycle_summary(db, cycle_id, user_id)
