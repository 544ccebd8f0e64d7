"""Pydantic schemas for authentication and user management endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.user import UserRole


class LoginRequest(BaseModel):
    """Payload required to obtain an access token."""

    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=8)


class TokenResponse(BaseModel):
    """Access token returned upon successful authentication."""

    access_token: str
    token_type: str = "bearer"


class IdentityRead(BaseModel):
    """Identity decoded from the bearer token."""

    user_id: int
    role: UserRole


class UserCreate(BaseModel):
    """Payload used by administrators to register a stylist or admin."""

    username: str = Field(..., min_length=3, max_length=120)
    stylist_name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.USER


class UserRead(BaseModel):
    """User representation without credentials."""

    id: int
    username: str
    stylist_name: str
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
