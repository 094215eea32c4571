"""Profile management API endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from parley.api.deps import get_current_user
from parley.core.timestamps import utcnow
from parley.database import get_db
from parley.models import User
from parley.schemas import ProfileRead, ProfileUpdate, StatusRead, StatusUpdate
from parley.services import accounts

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileRead)
async def read_profile(current_user: User = Depends(get_current_user)) -> ProfileRead:
    """Return profile information for the authenticated user."""

    return ProfileRead.model_validate(current_user, from_attributes=True)


@router.put("", response_model=ProfileRead)
async def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileRead:
    user = accounts.update_profile(db, current_user, payload.model_dump(exclude_unset=True))
    return ProfileRead.model_validate(user, from_attributes=True)


@router.get("/status", response_model=StatusRead)
async def read_status(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.put("/status", response_model=StatusRead)
async def update_status(
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    return accounts.set_presence(db, current_user, payload.status)


@router.get("/export")
async def export_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    """Download everything stored about the caller as a JSON file."""

    document = accounts.export_data(db, current_user)
    file_name = f"parley-data-{current_user.id}-{utcnow():%Y%m%d}.json"
    return Response(
        content=json.dumps(document, indent=2, ensure_ascii=False),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )
