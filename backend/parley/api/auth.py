"""Authentication API endpoints."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.config import get_settings
from parley.core.security import (
    RefreshTokenError,
    create_access_token,
    create_refresh_token,
    revoke_refresh_token,
    validate_refresh_token,
)
from parley.database import get_db
from parley.models import PresenceStatus, User
from parley.schemas import (
    DeleteAccountRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    Token,
    UserCreate,
    UserRead,
)
from parley.services import accounts

logger = logging.getLogger(__name__)

router = APIRouter()
settings = get_settings()


def _issue_tokens(user: User) -> Token:
    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token({"sub": str(user.id)}, expires_delta=access_token_expires)
    refresh_token, _ = create_refresh_token(str(user.id))
    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=int(access_token_expires.total_seconds()),
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: UserCreate, db: Session = Depends(get_db)) -> User:
    """Register a new credentials account."""

    return accounts.register(
        db,
        email=user_in.email,
        password=user_in.password,
        real_name=user_in.real_name,
        nickname=user_in.nickname,
    )


@router.post("/login", response_model=Token)
async def login_user(credentials: LoginRequest, db: Session = Depends(get_db)) -> Token:
    """Authenticate a user and return access and refresh tokens."""

    try:
        user = accounts.authenticate(db, credentials.email, credentials.password)
    except accounts.AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    logger.info("User %s signed in", user.id)
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh_access_token(payload: RefreshRequest, db: Session = Depends(get_db)) -> Token:
    """Exchange a refresh token for a new token pair. Refresh tokens are single use."""

    try:
        refresh_data = validate_refresh_token(payload.refresh_token, revoke=True)
    except RefreshTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate refresh token",
        ) from exc

    try:
        user_id = int(refresh_data.subject)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token subject") from exc

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return _issue_tokens(user)


@router.post("/logout", response_model=MessageResponse)
async def logout_user(
    payload: LogoutRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Revoke the refresh token and mark the user offline."""

    if payload is not None and payload.refresh_token:
        if not revoke_refresh_token(payload.refresh_token, str(current_user.id)):
            logger.debug("No refresh token revoked on logout for user %s", current_user.id)
    accounts.set_presence(db, current_user, PresenceStatus.OFFLINE)
    return MessageResponse(message="Logged out successfully")


@router.delete("/delete-account", response_model=MessageResponse)
async def delete_account(
    payload: DeleteAccountRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Permanently remove the caller's account and everything it owns."""

    accounts.delete_account(db, current_user, payload.password, payload.confirmation)
    return MessageResponse(message="Account deleted successfully")
