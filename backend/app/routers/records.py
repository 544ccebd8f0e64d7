"""Routers exposing services and products logged against cycles."""

from typing import Optional, Type

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import Identity, get_current_identity
from ..services import RecordService
from .errors import service_errors


def build_record_router(
    kind: models.RecordKind, create_schema: Type[schemas.RecordCreate]
) -> APIRouter:
    """Return CRUD routes for one record kind sharing the record service."""

    router = APIRouter(dependencies=[Depends(get_current_identity)])

    @router.get("", response_model=schemas.RecordListResponse)
    def list_records(
        cycle_id: int = Query(..., description="Cycle whose records are listed"),
        user_id: Optional[int] = Query(None, description="Restrict to one stylist (admins)"),
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> schemas.RecordListResponse:
        with service_errors():
            items, total = RecordService.list_records_by_cycle(
                db,
                identity,
                cycle_id,
                kind=kind,
                user_id=user_id,
                skip=skip,
                limit=limit,
            )
        return schemas.RecordListResponse(
            items=[schemas.RecordRead.model_validate(item) for item in items],
            total=total,
            limit=limit,
            skip=skip,
        )

    @router.post("", response_model=schemas.RecordRead, status_code=status.HTTP_201_CREATED)
    def create_record(
        record_in: create_schema,  # type: ignore[valid-type]
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> schemas.RecordRead:
        with service_errors():
            record = RecordService.create_record(db, identity, record_in, kind)
        return schemas.RecordRead.model_validate(record)

    @router.get("/{record_id}", response_model=schemas.RecordRead)
    def read_record(
        record_id: int,
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> schemas.RecordRead:
        with service_errors():
            record = RecordService.get_record(db, identity, record_id, kind)
        return schemas.RecordRead.model_validate(record)

    @router.patch("/{record_id}", response_model=schemas.RecordRead)
    def update_record(
        record_id: int,
        record_in: schemas.RecordUpdate,
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> schemas.RecordRead:
        with service_errors():
            record = RecordService.update_record(db, identity, record_id, record_in, kind)
        return schemas.RecordRead.model_validate(record)

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_record(
        record_id: int,
        db: Session = Depends(get_db),
        identity: Identity = Depends(get_current_identity),
    ) -> Response:
        with service_errors():
            RecordService.delete_record(db, identity, record_id, kind)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


services_router = build_record_router(models.RecordKind.SERVICE, schemas.ServiceCreate)
products_router = build_record_router(models.RecordKind.PRODUCT, schemas.ProductCreate)
