"""Password hashing, bearer tokens and the identity dependencies used by routers."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .models.user import UserRole

AUTH_JWT_SECRET_ENV = "AUTH_JWT_SECRET"
ACCESS_TOKEN_EXPIRE_MINUTES_ENV = "ACCESS_TOKEN_EXPIRE_MINUTES"

DEFAULT_TOKEN_MINUTES = 30
PBKDF2_DEFAULT_ITERATIONS = 390_000
HASH_SEPARATOR = "$"

_TOKEN_HEADER = {"typ": "JWT", "alg": "HS256"}

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class SecurityConfigurationError(RuntimeError):
    """Raised when mandatory security settings are missing or invalid."""


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as supplied to the record and cycle services."""

    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def generate_password_hash(password: str, *, iterations: int = PBKDF2_DEFAULT_ITERATIONS) -> str:
    """Return ``iterations$salt$digest`` with url-safe base64 salt and digest."""

    if not password:
        raise ValueError("password must not be empty")
    salt = secrets.token_bytes(16)
    digest = _pbkdf2(password, salt, iterations)
    return HASH_SEPARATOR.join(
        (
            str(iterations),
            base64.urlsafe_b64encode(salt).decode("ascii"),
            base64.urlsafe_b64encode(digest).decode("ascii"),
        )
    )


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        raw_iterations, raw_salt, raw_digest = stored_hash.split(HASH_SEPARATOR)
        iterations = int(raw_iterations)
        salt = base64.urlsafe_b64decode(raw_salt)
        expected = base64.urlsafe_b64decode(raw_digest)
    except (ValueError, binascii.Error) as exc:
        raise SecurityConfigurationError("Stored password hash is invalid") from exc
    return hmac.compare_digest(_pbkdf2(password, salt, iterations), expected)


@lru_cache(maxsize=1)
def _load_jwt_key() -> bytes:
    secret = os.getenv(AUTH_JWT_SECRET_ENV)
    if not secret:
        raise SecurityConfigurationError(f"Environment variable '{AUTH_JWT_SECRET_ENV}' is required")
    try:
        return base64.urlsafe_b64decode(secret)
    except (ValueError, binascii.Error):
        return secret.encode("utf-8")


def _token_lifetime() -> timedelta:
    raw = os.getenv(ACCESS_TOKEN_EXPIRE_MINUTES_ENV)
    if not raw:
        return timedelta(minutes=DEFAULT_TOKEN_MINUTES)
    try:
        minutes = int(raw)
    except ValueError as exc:
        raise SecurityConfigurationError(f"{ACCESS_TOKEN_EXPIRE_MINUTES_ENV} must be an integer") from exc
    if minutes <= 0:
        raise SecurityConfigurationError(f"{ACCESS_TOKEN_EXPIRE_MINUTES_ENV} must be positive")
    return timedelta(minutes=minutes)


def _segment(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _unpad(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _signature(signing_input: str, key: bytes) -> bytes:
    return hmac.new(key, signing_input.encode("ascii"), hashlib.sha256).digest()


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _encode_jwt(claims: dict[str, Any], key: bytes) -> str:
    signing_input = f"{_segment(_TOKEN_HEADER)}.{_segment(claims)}"
    signature = base64.urlsafe_b64encode(_signature(signing_input, key)).rstrip(b"=").decode("ascii")
    return f"{signing_input}.{signature}"


def _decode_jwt(token: str, key: bytes) -> dict[str, Any]:
    """Verify the signature and expiry of ``token`` and return its claims."""

    parts = token.split(".")
    if len(parts) != 3:
        raise _unauthorized()
    header_segment, claims_segment, signature_segment = parts
    try:
        signature = _unpad(signature_segment)
        claims = json.loads(_unpad(claims_segment).decode("utf-8"))
    except (ValueError, binascii.Error) as exc:
        raise _unauthorized() from exc

    if not hmac.compare_digest(signature, _signature(f"{header_segment}.{claims_segment}", key)):
        raise _unauthorized()
    if not isinstance(claims, dict) or claims.get("exp") is None:
        raise _unauthorized()
    expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    if datetime.now(timezone.utc) >= expires_at:
        raise _unauthorized("Token expired")
    return claims


def create_access_token(identity: Identity) -> str:
    expires_at = datetime.now(timezone.utc) + _token_lifetime()
    claims = {
        "sub": str(identity.user_id),
        "role": identity.role.value,
        "exp": int(expires_at.timestamp()),
    }
    return _encode_jwt(claims, _load_jwt_key())


def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    """Decode the bearer token into the caller's ``Identity``."""

    claims = _decode_jwt(token, _load_jwt_key())
    try:
        return Identity(user_id=int(claims.get("sub")), role=UserRole(claims.get("role")))
    except (TypeError, ValueError) as exc:
        raise _unauthorized() from exc


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator privileges required",
        )
    return identity
