"""Group lifecycle and role-gated membership management.

Roles rank ``owner > admin > member``. Each group has exactly one owner:
the owner can never be demoted or kicked, only the owner reassigns roles,
and admins may remove members but not other admins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session, selectinload

from parley.core.timestamps import as_utc
from parley.models import Group, GroupMember, GroupRole, Message, TypingIndicator, User
from parley.services.conversations import delete_messages
from parley.services.errors import ForbiddenError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

MANAGER_ROLES = (GroupRole.OWNER, GroupRole.ADMIN)
GROUP_FIELDS = ("name", "description", "image", "is_private", "max_members")
RECENT_MESSAGES = 50

GroupFilter = Literal["my", "public", "all"]


@dataclass(slots=True)
class GroupSummary:
    """Group with aggregate counts relative to one viewer."""

    group: Group
    member_count: int
    message_count: int
    user_role: GroupRole | None

    @property
    def is_member(self) -> bool:
        return self.user_role is not None


def load_group(db: Session, group_id: int) -> Group:
    stmt = (
        select(Group)
        .where(Group.id == group_id)
        .options(selectinload(Group.members).selectinload(GroupMember.user))
    )
    group = db.execute(stmt).scalar_one_or_none()
    if group is None:
        raise NotFoundError("Group not found")
    return group


def require_member(group: Group, user_id: int) -> GroupMember:
    member = group.member_for(user_id)
    if member is None:
        raise ForbiddenError("You are not a member of this group")
    return member


def require_manager(group: Group, user_id: int, detail: str = "Only admins can manage this group") -> GroupMember:
    member = group.member_for(user_id)
    if member is None or member.role not in MANAGER_ROLES:
        raise ForbiddenError(detail)
    return member


def ensure_readable(group: Group, user_id: int) -> None:
    if group.is_private and group.member_for(user_id) is None:
        raise ForbiddenError("You don't have access to this group")


def _ensure_capacity(group: Group) -> None:
    if len(group.members) >= group.max_members:
        raise InvalidInputError("Group has reached maximum member limit")


def _validated_name(name: Any) -> str:
    text = str(name).strip() if name is not None else ""
    if not text:
        raise InvalidInputError("Group name is required")
    if len(text) > 100:
        raise InvalidInputError("Group name must be less than 100 characters")
    return text


def _message_counts(db: Session, group_ids: list[int]) -> dict[int, int]:
    if not group_ids:
        return {}
    stmt = (
        select(Message.group_id, func.count(Message.id))
        .where(Message.group_id.in_(group_ids), Message.is_deleted.is_(False))
        .group_by(Message.group_id)
    )
    return {group_id: count for group_id, count in db.execute(stmt)}


def summarize(db: Session, groups: list[Group], user_id: int) -> list[GroupSummary]:
    counts = _message_counts(db, [group.id for group in groups])
    summaries = []
    for group in groups:
        member = group.member_for(user_id)
        summaries.append(
            GroupSummary(
                group=group,
                member_count=len(group.members),
                message_count=counts.get(group.id, 0),
                user_role=member.role if member is not None else None,
            )
        )
    return summaries


def list_groups(
    db: Session, user: User, group_filter: GroupFilter = "all", search: str | None = None
) -> list[GroupSummary]:
    memberships = select(GroupMember.group_id).where(GroupMember.user_id == user.id)
    if group_filter == "my":
        condition = Group.id.in_(memberships)
    elif group_filter == "public":
        condition = Group.is_private.is_(False)
    elif group_filter == "all":
        condition = or_(Group.is_private.is_(False), Group.id.in_(memberships))
    else:
        raise InvalidInputError("Invalid filter")

    stmt = select(Group).where(condition)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(or_(Group.name.ilike(pattern), Group.description.ilike(pattern)))
    stmt = stmt.options(selectinload(Group.members).selectinload(GroupMember.user)).order_by(
        Group.updated_at.desc(), Group.id.desc()
    )
    groups = list(db.execute(stmt).scalars())
    return summarize(db, groups, user.id)


def create_group(
    db: Session,
    creator: User,
    name: Any,
    *,
    description: str | None = None,
    image: str | None = None,
    is_private: bool = False,
    max_members: int = 100,
) -> Group:
    """Create a group whose creator becomes its single owner."""

    group = Group(
        name=_validated_name(name),
        description=description,
        image=image,
        is_private=is_private,
        max_members=max_members,
        creator_id=creator.id,
    )
    group.members = [GroupMember(user_id=creator.id, role=GroupRole.OWNER)]
    db.add(group)
    db.commit()
    logger.info("User %s created group %s", creator.id, group.id)
    return load_group(db, group.id)


def recent_messages(db: Session, group: Group) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.group_id == group.id, Message.is_deleted.is_(False))
        .options(selectinload(Message.sender))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(RECENT_MESSAGES)
    )
    messages = list(db.execute(stmt).scalars())
    messages.reverse()
    return messages


def apply_settings(group: Group, changes: dict[str, Any]) -> None:
    """Validate every whitelisted setting, then copy them onto the group."""

    validated: dict[str, Any] = {}
    for field_name, value in changes.items():
        if field_name not in GROUP_FIELDS:
            continue
        if field_name == "name":
            value = _validated_name(value)
        elif field_name == "is_private":
            if value is None:
                raise InvalidInputError("is_private cannot be null")
            value = bool(value)
        elif field_name == "max_members":
            if value is None:
                raise InvalidInputError("max_members cannot be null")
            if value < len(group.members):
                raise InvalidInputError("Capacity cannot be lower than the current member count")
        validated[field_name] = value
    for field_name, value in validated.items():
        setattr(group, field_name, value)


def update_group(db: Session, group: Group, actor: User, changes: dict[str, Any]) -> Group:
    require_manager(group, actor.id, "Only admins can update group settings")
    apply_settings(group, changes)
    db.commit()
    return load_group(db, group.id)


def purge_group(db: Session, group: Group) -> None:
    """Delete a group with its messages and members. Does not commit."""

    message_ids = list(db.execute(select(Message.id).where(Message.group_id == group.id)).scalars())
    delete_messages(db, message_ids)
    db.execute(delete(TypingIndicator).where(TypingIndicator.group_id == group.id))
    db.expire(group, ["messages"])
    db.delete(group)


def delete_group(db: Session, group: Group, actor: User) -> None:
    member = group.member_for(actor.id)
    if member is None or member.role != GroupRole.OWNER:
        raise ForbiddenError("Only the owner can delete this group")
    group_id = group.id
    try:
        purge_group(db, group)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Group %s deleted by user %s", group_id, actor.id)


def join_group(db: Session, group: Group, user: User) -> GroupMember:
    if group.member_for(user.id) is not None:
        raise InvalidInputError("Already a member")
    if group.is_private:
        raise ForbiddenError("This is a private group. You need an invitation to join.")
    _ensure_capacity(group)
    member = GroupMember(group_id=group.id, user_id=user.id, role=GroupRole.MEMBER)
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


def leave_group(db: Session, group: Group, user: User) -> None:
    """Leave a group; a departing owner hands ownership to the senior admin."""

    member = group.member_for(user.id)
    if member is None:
        raise InvalidInputError("You are not a member of this group")

    successor: GroupMember | None = None
    if member.role == GroupRole.OWNER:
        candidates = [
            other
            for other in group.members
            if other.user_id != user.id and other.role in MANAGER_ROLES
        ]
        if not candidates:
            raise InvalidInputError("Transfer ownership before leaving")
        successor = sorted(candidates, key=lambda other: (as_utc(other.joined_at), other.id))[0]

    group.members.remove(member)
    if successor is not None:
        successor.role = GroupRole.OWNER
    db.commit()
    logger.info("User %s left group %s", user.id, group.id)


def add_member(db: Session, group: Group, actor: User, user_id: int | None) -> GroupMember:
    require_manager(group, actor.id, "Only admins can add members")
    if user_id is None:
        raise InvalidInputError("User ID is required")
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    if group.member_for(user_id) is not None:
        raise InvalidInputError("User is already a member")
    _ensure_capacity(group)
    member = GroupMember(group_id=group.id, user_id=user_id, role=GroupRole.MEMBER)
    db.add(member)
    db.commit()
    db.refresh(member)
    logger.info("User %s added %s to group %s", actor.id, user_id, group.id)
    return member


def list_members(group: Group, viewer: User) -> list[GroupMember]:
    ensure_readable(group, viewer.id)
    return sorted(group.members, key=lambda member: (member.role.rank, as_utc(member.joined_at), member.id))


def _target_member(group: Group, user_id: int) -> GroupMember:
    member = group.member_for(user_id)
    if member is None:
        raise NotFoundError("Member not found")
    return member


def update_member(
    db: Session, group: Group, actor: User, target_user_id: int, changes: dict[str, Any]
) -> GroupMember:
    """Change a member's role, mute or nickname.

    ``changes`` only holds the keys the caller supplied, so an explicit
    ``None`` clears a mute or nickname.
    """

    actor_member = require_manager(group, actor.id, "Only admins can manage members")
    target = _target_member(group, target_user_id)

    if "role" in changes and changes["role"] is not None:
        if actor_member.role != GroupRole.OWNER:
            raise ForbiddenError("Only the group owner can update roles")
        if target.role == GroupRole.OWNER:
            raise ForbiddenError("The group owner cannot be demoted")
        new_role = GroupRole(changes["role"])
        if new_role == GroupRole.OWNER:
            raise InvalidInputError("Invalid role")
        target.role = new_role

    if "muted_until" in changes:
        muted_until: datetime | None = changes["muted_until"]
        if muted_until is not None and target.role == GroupRole.OWNER:
            raise ForbiddenError("The group owner cannot be muted")
        target.muted_until = as_utc(muted_until)

    if "nickname" in changes:
        nickname = (changes["nickname"] or "").strip()
        target.nickname = nickname[:50] or None

    db.commit()
    db.refresh(target)
    return target


def remove_member(db: Session, group: Group, actor: User, target_user_id: int) -> None:
    actor_member = require_manager(group, actor.id, "Only admins can remove members")
    target = _target_member(group, target_user_id)
    if target.role == GroupRole.OWNER:
        raise ForbiddenError("The group owner cannot be removed")
    if actor_member.role == GroupRole.ADMIN and target.role == GroupRole.ADMIN and target.id != actor_member.id:
        raise ForbiddenError("Admins cannot remove other admins")
    group.members.remove(target)
    db.commit()
    logger.info("User %s removed %s from group %s", actor.id, target_user_id, group.id)
