"""Authentication endpoints for stylists and administrators."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..security import Identity, create_access_token, get_current_identity
from ..services import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=schemas.TokenResponse)
def obtain_access_token(
    payload: schemas.LoginRequest, db: Session = Depends(get_db)
) -> schemas.TokenResponse:
    """Authenticate a user and return an access token."""

    user = UserService.authenticate(db, payload.username, payload.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = create_access_token(Identity(user_id=user.id, role=user.role))
    return schemas.TokenResponse(access_token=token)


@router.get("/me", response_model=schemas.IdentityRead)
def read_identity(identity: Identity = Depends(get_current_identity)) -> schemas.IdentityRead:
    return schemas.IdentityRead(user_id=identity.user_id, role=identity.role)
