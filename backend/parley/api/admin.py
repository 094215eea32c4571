"""Admin moderation endpoints. Every route requires the admin role."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from parley.api.deps import require_admin
from parley.database import get_db
from parley.models import User
from parley.schemas import (
    AdminGroupRead,
    AdminGroupResult,
    AdminGroupUpdate,
    AdminStats,
    AdminUserList,
    AdminUserRead,
    AdminUserResult,
    AdminUserUpdate,
    DeletedCount,
    MessageResponse,
    PublicUser,
)
from parley.services import moderation
from parley.services.moderation import GroupOverview, UserOverview

router = APIRouter(prefix="/admin", tags=["admin"])


def _user_read(user: User, overview: UserOverview | None = None) -> AdminUserRead:
    return AdminUserRead(
        id=user.id,
        name=user.name,
        real_name=user.real_name,
        email=user.email,
        image=user.image,
        role=user.role,
        status=user.status,
        last_seen=user.last_seen,
        created_at=user.created_at,
        message_count=overview.message_count if overview else 0,
        group_message_count=overview.group_message_count if overview else 0,
        membership_count=overview.membership_count if overview else 0,
        created_group_count=overview.created_group_count if overview else 0,
    )


def _group_read(overview: GroupOverview) -> AdminGroupRead:
    group = overview.group
    return AdminGroupRead(
        id=group.id,
        name=group.name,
        description=group.description,
        image=group.image,
        is_private=group.is_private,
        max_members=group.max_members,
        creator_id=group.creator_id,
        created_at=group.created_at,
        updated_at=group.updated_at,
        member_count=overview.member_count,
        message_count=overview.message_count,
        creator=PublicUser.model_validate(group.creator) if group.creator is not None else None,
    )


@router.get("/users", response_model=AdminUserList)
async def list_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminUserList:
    overviews, stats = moderation.list_users(db)
    return AdminUserList(
        users=[_user_read(overview.user, overview) for overview in overviews],
        stats=AdminStats(**stats),
    )


@router.delete("/users", response_model=DeletedCount)
async def delete_all_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> DeletedCount:
    """Delete every account that is not an admin."""

    count = moderation.delete_all_users(db, admin)
    return DeletedCount(message=f"Deleted {count} users", deleted=count)


@router.get("/users/{user_id}", response_model=AdminUserRead)
async def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminUserRead:
    return _user_read(moderation.get_user(db, user_id))


@router.patch("/users/{user_id}", response_model=AdminUserResult)
async def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminUserResult:
    changes = payload.model_dump(exclude_unset=True, exclude={"action"})
    user, note = moderation.update_user(db, admin, user_id, payload.action, changes)
    return AdminUserResult(message=note, user=_user_read(user))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> MessageResponse:
    moderation.delete_user(db, admin, user_id)
    return MessageResponse(message="User deleted successfully")


@router.get("/groups", response_model=list[AdminGroupRead])
async def list_groups(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[AdminGroupRead]:
    return [_group_read(overview) for overview in moderation.list_groups(db)]


@router.delete("/groups", response_model=DeletedCount)
async def delete_all_groups(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> DeletedCount:
    count = moderation.delete_all_groups(db, admin)
    return DeletedCount(message=f"Deleted {count} groups", deleted=count)


@router.get("/groups/{group_id}", response_model=AdminGroupRead)
async def read_group(
    group_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminGroupRead:
    return _group_read(moderation.get_group(db, group_id))


@router.patch("/groups/{group_id}", response_model=AdminGroupResult)
async def update_group(
    group_id: int,
    payload: AdminGroupUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> AdminGroupResult:
    changes = payload.model_dump(exclude_unset=True, exclude={"action"})
    _, note = moderation.update_group(db, admin, group_id, payload.action, changes)
    return AdminGroupResult(message=note, group=_group_read(moderation.get_group(db, group_id)))


@router.delete("/groups/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> MessageResponse:
    moderation.delete_group(db, admin, group_id)
    return MessageResponse(message="Group deleted successfully")
