"""Privileged moderation of users and groups.

Callers must already be verified as platform admins; see
``parley.api.deps.require_admin``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from parley.models import Group, GroupMember, GroupRole, Message, PresenceStatus, User, UserRole
from parley.schemas.auth import EMAIL_PATTERN
from parley.services.accounts import purge_user
from parley.services.conversations import delete_messages
from parley.services.errors import (
    CannotDeleteAdmin,
    CannotDeleteSelf,
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from parley.services.groups import apply_settings, load_group, purge_group

logger = logging.getLogger(__name__)

USER_FIELDS = ("name", "real_name", "email", "role", "status", "bio", "image")
NON_NULL_USER_FIELDS = ("email", "role", "status")


@dataclass(slots=True)
class UserOverview:
    user: User
    message_count: int
    group_message_count: int
    membership_count: int
    created_group_count: int


@dataclass(slots=True)
class GroupOverview:
    group: Group
    member_count: int
    message_count: int


def _grouped_counts(db: Session, column, *conditions) -> dict[int, int]:
    stmt = select(column, func.count()).where(column.is_not(None), *conditions).group_by(column)
    return {key: count for key, count in db.execute(stmt)}


def list_users(db: Session) -> tuple[list[UserOverview], dict[str, int]]:
    users = list(db.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars())
    direct = _grouped_counts(db, Message.sender_id, Message.conversation_id.is_not(None))
    in_groups = _grouped_counts(db, Message.sender_id, Message.group_id.is_not(None))
    memberships = _grouped_counts(db, GroupMember.user_id)
    created = _grouped_counts(db, Group.creator_id)

    overviews = [
        UserOverview(
            user=user,
            message_count=direct.get(user.id, 0),
            group_message_count=in_groups.get(user.id, 0),
            membership_count=memberships.get(user.id, 0),
            created_group_count=created.get(user.id, 0),
        )
        for user in users
    ]
    stats = {
        "total_users": len(users),
        "online_users": sum(1 for user in users if user.status == PresenceStatus.ONLINE),
        "total_groups": int(db.execute(select(func.count(Group.id))).scalar_one()),
        "total_messages": int(db.execute(select(func.count(Message.id))).scalar_one()),
    }
    return overviews, stats


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def delete_user(db: Session, admin: User, user_id: int) -> None:
    if user_id == admin.id:
        raise CannotDeleteSelf()
    target = get_user(db, user_id)
    if target.role == UserRole.ADMIN:
        raise CannotDeleteAdmin()
    try:
        purge_user(db, target)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin %s deleted user %s", admin.id, user_id)


def delete_all_users(db: Session, admin: User) -> int:
    """Delete every non-admin account."""

    targets = list(db.execute(select(User).where(User.role != UserRole.ADMIN)).scalars())
    try:
        for target in targets:
            purge_user(db, target)
            db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin %s deleted %d users", admin.id, len(targets))
    return len(targets)


def clear_user_messages(db: Session, user_id: int) -> int:
    get_user(db, user_id)
    ids = list(db.execute(select(Message.id).where(Message.sender_id == user_id)).scalars())
    count = delete_messages(db, ids)
    db.commit()
    return count


def _validated_user_changes(changes: dict[str, Any]) -> dict[str, Any]:
    validated: dict[str, Any] = {}
    for field_name, value in changes.items():
        if field_name not in USER_FIELDS:
            continue
        if value is None and field_name in NON_NULL_USER_FIELDS:
            raise InvalidInputError(f"{field_name} cannot be null")
        try:
            if field_name == "role":
                value = UserRole(value)
            elif field_name == "status":
                value = PresenceStatus(value)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid {field_name}") from exc
        if field_name == "email":
            value = str(value).strip().lower()
            if not EMAIL_PATTERN.match(value):
                raise InvalidInputError("Invalid email address")
        validated[field_name] = value
    return validated


def update_user(db: Session, admin: User, user_id: int, action: str | None, changes: dict[str, Any]) -> tuple[User, str | None]:
    """Run a moderation action or apply whitelisted field changes.

    Returns the user and a human readable note for action requests.
    """

    target = get_user(db, user_id)
    if action == "removePhoto":
        target.image = None
        db.commit()
        return target, "Profile photo removed"
    if action == "clearMessages":
        count = clear_user_messages(db, target.id)
        logger.info("Admin %s cleared %d messages of user %s", admin.id, count, target.id)
        return target, f"Deleted {count} messages"
    if action is not None:
        raise InvalidInputError("Invalid action")

    for field_name, value in _validated_user_changes(changes).items():
        setattr(target, field_name, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("An account with this email already exists") from exc
    db.refresh(target)
    return target, None


def list_groups(db: Session) -> list[GroupOverview]:
    groups = list(
        db.execute(
            select(Group)
            .options(selectinload(Group.members), selectinload(Group.creator))
            .order_by(Group.created_at.desc(), Group.id.desc())
        ).scalars()
    )
    message_counts = _grouped_counts(db, Message.group_id)
    return [
        GroupOverview(group=group, member_count=len(group.members), message_count=message_counts.get(group.id, 0))
        for group in groups
    ]


def get_group(db: Session, group_id: int) -> GroupOverview:
    group = load_group(db, group_id)
    count = int(db.execute(select(func.count(Message.id)).where(Message.group_id == group.id)).scalar_one())
    return GroupOverview(group=group, member_count=len(group.members), message_count=count)


def delete_group(db: Session, admin: User, group_id: int) -> None:
    group = load_group(db, group_id)
    try:
        purge_group(db, group)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin %s deleted group %s", admin.id, group_id)


def delete_all_groups(db: Session, admin: User) -> int:
    groups = list(db.execute(select(Group)).scalars())
    try:
        for group in groups:
            purge_group(db, group)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Admin %s deleted %d groups", admin.id, len(groups))
    return len(groups)


def update_group(
    db: Session, admin: User, group_id: int, action: str | None, changes: dict[str, Any]
) -> tuple[Group, str | None]:
    group = load_group(db, group_id)
    if action == "removeMember":
        user_id = changes.get("user_id")
        member = group.member_for(user_id) if user_id is not None else None
        if member is None:
            raise NotFoundError("Member not found")
        if member.role == GroupRole.OWNER:
            raise ForbiddenError("Delete the group instead of removing its owner")
        group.members.remove(member)
        db.commit()
        logger.info("Admin %s removed user %s from group %s", admin.id, user_id, group.id)
        return load_group(db, group.id), "Member removed"
    if action == "clearMessages":
        ids = list(db.execute(select(Message.id).where(Message.group_id == group.id)).scalars())
        count = delete_messages(db, ids)
        db.commit()
        logger.info("Admin %s cleared %d messages of group %s", admin.id, count, group.id)
        return load_group(db, group.id), f"Deleted {count} messages"
    if action is not None:
        raise InvalidInputError("Invalid action")

    apply_settings(group, changes)
    db.commit()
    return load_group(db, group.id), None
