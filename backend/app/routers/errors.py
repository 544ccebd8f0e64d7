"""Translate service exceptions into HTTP responses."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, status

from .. import schemas
from ..services import (
    CycleInUseError,
    IntegrityAbortError,
    MigrationConfigurationError,
    MigrationInProgressError,
    NotFoundError,
    RecordPermissionError,
    RecordServiceError,
    RecordValidationError,
)
from ..services.backups import BackupError

LOGGER = logging.getLogger(__name__)


def validation_detail(exc: RecordValidationError) -> dict:
    return schemas.RuleViolation(rule=exc.rule, message=str(exc), field=exc.field).model_dump()


@contextmanager
def service_errors() -> Iterator[None]:
    """Re-raise service exceptions as ``HTTPException`` with a matching status."""

    try:
        yield
    except RecordValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=validation_detail(exc)
        ) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RecordPermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except (CycleInUseError, MigrationInProgressError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except IntegrityAbortError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "report": exc.report.model_dump(mode="json")},
        ) from exc
    except BackupError as exc:
        LOGGER.error("Backup failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    except MigrationConfigurationError as exc:
        LOGGER.error("Cycle migration is misconfigured: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    except RecordServiceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
