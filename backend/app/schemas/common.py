"""Shared schema definitions."""

from __future__ import annotations

from typing import Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard shape for paginated listings."""

    items: Sequence[T]
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    skip: int = Field(..., ge=0)


class RuleViolation(BaseModel):
    """Error payload naming the business rule a request broke."""

    rule: str = Field(..., description="Identifier of the violated rule")
    message: str = Field(..., description="Human readable explanation")
    field: Optional[str] = Field(default=None, description="Offending field, when known")
