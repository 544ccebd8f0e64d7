"""Exception types raised by the cycle, record and migration services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover - only used for typing
    from .. import models
    from .cycle_migration import MigrationReport


class RecordValidationError(ValueError):
    """Raised when a record or cycle breaks a business rule.

    ``rule`` identifies the violated rule (``payment_sum_mismatch``,
    ``negative_amount``, ``date_outside_cycle``...) so callers can react to it
    without parsing the message.
    """

    def __init__(self, rule: str, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.rule = rule
        self.field = field


class NotFoundError(LookupError):
    """Raised when an identifier does not match any stored entity."""


class CycleNotFoundError(NotFoundError):
    """Raised when a cycle identifier is unknown."""


class RecordNotFoundError(NotFoundError):
    """Raised when a record identifier is unknown or not visible to the caller."""


class UserNotFoundError(NotFoundError):
    """Raised when a user identifier is unknown."""


class RecordPermissionError(PermissionError):
    """Raised when a stylist attempts an admin-only change."""


class CycleInUseError(ValueError):
    """Raised when deleting a cycle that still has records."""


class RecordServiceError(RuntimeError):
    """Raised when record operations cannot be persisted."""


class MigrationInProgressError(RuntimeError):
    """Raised when a write arrives while a cycle migration holds the write gate."""


class AmbiguousCycleError(RuntimeError):
    """Raised when a date falls inside more than one cycle."""

    def __init__(self, candidates: Sequence["models.Cycle"]) -> None:
        names = ", ".join(f"{cycle.id} ({cycle.name})" for cycle in candidates)
        super().__init__(f"Date matches {len(candidates)} cycles: {names}")
        self.candidates = list(candidates)


class IntegrityAbortError(RuntimeError):
    """Raised when a migration run exceeds its error threshold and is rolled back."""

    def __init__(self, message: str, report: "MigrationReport") -> None:
        super().__init__(message)
        self.report = report


class MigrationConfigurationError(ValueError):
    """Raised when the migration error threshold is not a number between 0 and 1."""
