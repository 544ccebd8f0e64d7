"""Service helpers to register and authenticate stylists and administrators."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..security import generate_password_hash, verify_password
from .errors import RecordServiceError, RecordValidationError, UserNotFoundError

LOGGER = logging.getLogger(__name__)


class UserService:
    """Operations over the ``users`` table."""

    @staticmethod
    def _normalize_username(username: str) -> str:
        return username.strip().lower()

    @classmethod
    def create_user(cls, db: Session, data: schemas.UserCreate) -> models.User:
        username = cls._normalize_username(data.username)
        existing = db.query(models.User).filter(models.User.username == username).first()
        if existing is not None:
            raise RecordValidationError(
                "duplicate_username", f"Username '{username}' is already taken", field="username"
            )

        user = models.User(
            username=username,
            stylist_name=data.stylist_name.strip(),
            role=data.role,
            password_hash=generate_password_hash(data.password),
        )
        try:
            db.add(user)
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise RecordValidationError(
                "duplicate_username", f"Username '{username}' is already taken", field="username"
            ) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise RecordServiceError("Unable to create user at this time.") from exc
        db.refresh(user)
        LOGGER.info("Created %s user %s", user.role.value, user.username)
        return user

    @classmethod
    def authenticate(cls, db: Session, username: str, password: str) -> Optional[models.User]:
        """Return the user when the credentials match, otherwise ``None``."""

        user = (
            db.query(models.User)
            .filter(models.User.username == cls._normalize_username(username))
            .first()
        )
        if user is None or not verify_password(password, user.password_hash):
            LOGGER.warning("Failed login attempt for %s", username)
            return None
        return user

    @staticmethod
    def get_user(db: Session, user_id: int) -> models.User:
        user = db.get(models.User, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(db: Session, role: Optional[models.UserRole] = None) -> list[models.User]:
        query = db.query(models.User)
        if role is not None:
            query = query.filter(models.User.role == role)
        return query.order_by(models.User.stylist_name, models.User.id).all()
