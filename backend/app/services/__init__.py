"""Service layer encapsulating business logic for API routers."""

from .backups import BackupError, create_backup
from .cycle_migration import CycleMigrationService, ensure_writes_allowed
from .cycles import CycleService, match_cycles, parse_calendar_date
from .data_consistency import CycleIntegritySnapshot, DataConsistencyService
from .errors import (
    AmbiguousCycleError,
    CycleInUseError,
    CycleNotFoundError,
    IntegrityAbortError,
    MigrationConfigurationError,
    MigrationInProgressError,
    NotFoundError,
    RecordNotFoundError,
    RecordPermissionError,
    RecordServiceError,
    RecordValidationError,
    UserNotFoundError,
)
from .payment_validation import NormalizedPayment, PaymentValidator
from .records import RecordService
from .statistics import STATS_CACHE, StatisticsService, StatsCache
from .users import UserService

__all__ = [
    "BackupError",
    "create_backup",
    "CycleMigrationService",
    "ensure_writes_allowed",
    "CycleService",
    "match_cycles",
    "parse_calendar_date",
    "CycleIntegritySnapshot",
    "DataConsistencyService",
    "AmbiguousCycleError",
    "CycleInUseError",
    "CycleNotFoundError",
    "IntegrityAbortError",
    "MigrationConfigurationError",
    "MigrationInProgressError",
    "NotFoundError",
    "RecordNotFoundError",
    "RecordPermissionError",
    "RecordServiceError",
    "RecordValidationError",
    "UserNotFoundError",
    "NormalizedPayment",
    "PaymentValidator",
    "RecordService",
    "STATS_CACHE",
    "StatisticsService",
    "StatsCache",
    "UserService",
]
