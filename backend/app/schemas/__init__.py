"""Expose Pydantic schemas for convenient imports."""

from .auth import IdentityRead, LoginRequest, TokenResponse, UserCreate, UserRead
from .common import PaginatedResponse, RuleViolation
from .cycle import (
    CycleBase,
    CycleCreate,
    CycleListResponse,
    CycleOverlap,
    CycleRead,
    CycleUpdate,
)
from .integrity import CycleIntegrityReport, OutOfRangeRecord, PaymentSumMismatch
from .migration import (
    AmbiguousRecord,
    CycleReference,
    MalformedRecord,
    MigrationReport,
    MovedRecord,
    UnassignableRecord,
)
from .record import (
    PaymentEntry,
    ProductCreate,
    RecordBase,
    RecordCreate,
    RecordListResponse,
    RecordRead,
    RecordUpdate,
    ServiceCreate,
)
from .stats import CycleStats, CycleStatsResponse, CycleTotals

__all__ = [
    "IdentityRead",
    "LoginRequest",
    "TokenResponse",
    "UserCreate",
    "UserRead",
    "PaginatedResponse",
    "RuleViolation",
    "CycleBase",
    "CycleCreate",
    "CycleListResponse",
    "CycleOverlap",
    "CycleRead",
    "CycleUpdate",
    "CycleIntegrityReport",
    "OutOfRangeRecord",
    "PaymentSumMismatch",
    "AmbiguousRecord",
    "CycleReference",
    "MalformedRecord",
    "MigrationReport",
    "MovedRecord",
    "UnassignableRecord",
    "PaymentEntry",
    "ProductCreate",
    "RecordBase",
    "RecordCreate",
    "RecordListResponse",
    "RecordRead",
    "RecordUpdate",
    "ServiceCreate",
    "CycleStats",
    "CycleStatsResponse",
    "CycleTotals",
]
