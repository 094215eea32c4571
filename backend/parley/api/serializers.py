"""Conversion of service results into response schemas."""

from __future__ import annotations

from fastapi import HTTPException, status

from parley.models import Call, ReadReceipt, User
from parley.schemas import (
    CallHistoryEntry,
    ConversationRead,
    GroupDetail,
    GroupMemberRead,
    GroupRead,
    MessagePageRead,
    MessageRead,
    ParticipantRead,
    PublicUser,
    ReadReceiptRead,
    ReadReceiptsRead,
)
from parley.services.conversations import ConversationSummary
from parley.services.groups import GroupSummary
from parley.services.messaging import MessagePage


def parse_id_list(raw: str | None) -> list[int]:
    """Parse ``"1,2,3"`` into ids, rejecting anything else with 400."""

    values = [part.strip() for part in (raw or "").split(",") if part.strip()]
    if not values:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message IDs are required")
    try:
        return [int(value) for value in values]
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid message ID") from None


def serialize_conversation(summary: ConversationSummary) -> ConversationRead:
    conversation = summary.conversation
    participant = summary.participant
    return ConversationRead(
        id=conversation.id,
        is_group=conversation.is_group,
        name=conversation.name,
        creator_id=conversation.creator_id,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        participants=[ParticipantRead.model_validate(item) for item in conversation.participants],
        last_message=MessageRead.model_validate(summary.last_message) if summary.last_message else None,
        unread_count=summary.unread_count,
        is_muted=participant.is_muted,
        is_archived=participant.is_archived,
        is_pinned=participant.is_pinned,
        cleared_at=participant.cleared_at,
    )


def serialize_page(page: MessagePage) -> MessagePageRead:
    return MessagePageRead(
        messages=[MessageRead.model_validate(message) for message in page.messages],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


def serialize_receipts(receipts: dict[int, list[ReadReceipt]]) -> ReadReceiptsRead:
    return ReadReceiptsRead(
        receipts={
            message_id: [ReadReceiptRead.model_validate(receipt) for receipt in items]
            for message_id, items in receipts.items()
        }
    )


def _group_fields(summary: GroupSummary) -> dict:
    group = summary.group
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "image": group.image,
        "is_private": group.is_private,
        "max_members": group.max_members,
        "creator_id": group.creator_id,
        "created_at": group.created_at,
        "updated_at": group.updated_at,
        "member_count": summary.member_count,
        "message_count": summary.message_count,
        "is_member": summary.is_member,
        "user_role": summary.user_role,
    }


def serialize_group(summary: GroupSummary) -> GroupRead:
    return GroupRead(**_group_fields(summary))


def serialize_group_detail(summary: GroupSummary, members, messages) -> GroupDetail:
    return GroupDetail(
        **_group_fields(summary),
        members=[GroupMemberRead.model_validate(member) for member in members],
        messages=[MessageRead.model_validate(message) for message in messages],
    )


def serialize_history_entry(call: Call, viewer: User) -> CallHistoryEntry:
    is_outgoing = call.initiator_id == viewer.id
    other = call.receiver if is_outgoing else call.initiator
    return CallHistoryEntry(
        id=call.id,
        initiator_id=call.initiator_id,
        receiver_id=call.receiver_id,
        initiator=PublicUser.model_validate(call.initiator),
        receiver=PublicUser.model_validate(call.receiver),
        type=call.type,
        status=call.status,
        offer=call.offer,
        answer=call.answer,
        ice_candidates=call.ice_candidates,
        started_at=call.started_at,
        ended_at=call.ended_at,
        duration=call.duration,
        is_outgoing=is_outgoing,
        other_user=PublicUser.model_validate(other),
    )
