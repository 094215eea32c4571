"""User directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.database import get_db
from parley.models import User
from parley.schemas import ConnectionRead, PublicUser
from parley.services import contacts

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[PublicUser])
async def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[User]:
    """Return every other user ordered by name."""

    stmt = select(User).where(User.id != current_user.id).order_by(User.name.asc(), User.id.asc())
    return list(db.execute(stmt).scalars())


@router.get("/{user_id}/connection", response_model=ConnectionRead)
async def read_connection(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ConnectionRead:
    """Report whether the caller can chat with ``user_id`` or still send a request."""

    return ConnectionRead.model_validate(contacts.connection_status(db, current_user, user_id))
