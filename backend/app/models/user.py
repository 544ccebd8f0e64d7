"""Models describing stylists and administrators."""

from __future__ import annotations

import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String, func
from sqlalchemy.orm import relationship

from ..database import Base


class UserRole(str, enum.Enum):
    """Roles understood by the authorization layer."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """A stylist or administrator that owns records."""

    __tablename__ = "users"

    id = Column("user_id", Integer, primary_key=True, autoincrement=True)
    username = Column(String(120), nullable=False, unique=True)
    stylist_name = Column(String(200), nullable=False)
    role = Column(
        Enum(
            UserRole,
            name="user_role_enum",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=UserRole.USER,
    )
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    records = relationship("Record", back_populates="user")
