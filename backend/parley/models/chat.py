from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.core.timestamps import utcnow
from parley.models.base import Base
from parley.models.enums import (
    CallStatus,
    CallType,
    ChatRequestStatus,
    ConversationRole,
    GroupRole,
    MessageType,
    PresenceStatus,
    UserRole,
)


def _enum(enum_cls, name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda enum_cls: [member.value for member in enum_cls],
    )


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )


def _updated_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255))
    name: Mapped[str | None] = mapped_column(String(100))
    real_name: Mapped[str | None] = mapped_column(String(100))
    image: Mapped[str | None] = mapped_column(String(512))
    bio: Mapped[str | None] = mapped_column(Text)
    hobbies: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str | None] = mapped_column(String(128))
    website: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    gender: Mapped[str | None] = mapped_column(String(32))
    occupation: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[PresenceStatus] = mapped_column(
        _enum(PresenceStatus, "presence_status"),
        default=PresenceStatus.OFFLINE,
        nullable=False,
    )
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    role: Mapped[UserRole] = mapped_column(
        _enum(UserRole, "user_role"), default=UserRole.USER, nullable=False
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ChatRequest(Base):
    """Directed proposal from one user to open a conversation with another.

    ``active_pair_key`` holds ``"<min id>:<max id>"`` while the request is
    pending or accepted and is cleared once rejected; its unique index keeps
    at most one live request per unordered pair.
    """

    __tablename__ = "chat_requests"
    __table_args__ = (
        UniqueConstraint("active_pair_key", name="uq_chat_request_active_pair"),
        Index("ix_chat_requests_sender_receiver", "sender_id", "receiver_id", "created_at"),
        Index("ix_chat_requests_receiver", "receiver_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[ChatRequestStatus] = mapped_column(
        _enum(ChatRequestStatus, "chat_request_status"),
        default=ChatRequestStatus.PENDING,
        nullable=False,
    )
    message: Mapped[str | None] = mapped_column(String(500))
    active_pair_key: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    sender: Mapped[User] = relationship(foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship(foreign_keys=[receiver_id])


class Conversation(Base):
    """Message thread between users. Supports direct and ad hoc group chats."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_direct_conversation_pair"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    is_group: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    name: Mapped[str | None] = mapped_column(String(100))
    user_a_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    user_b_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    creator_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    participants: Mapped[list["ConversationUser"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationUser.id",
    )
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
    )

    def has_user(self, user_id: int) -> bool:
        return any(participant.user_id == user_id for participant in self.participants)

    def participant_for(self, user_id: int) -> "ConversationUser | None":
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None


class ConversationUser(Base):
    """Per-participant overlay state of a conversation."""

    __tablename__ = "conversation_users"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[ConversationRole] = mapped_column(
        _enum(ConversationRole, "conversation_role"),
        default=ConversationRole.MEMBER,
        nullable=False,
    )
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cleared_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[datetime] = _created_at()

    conversation: Mapped[Conversation] = relationship(back_populates="participants")
    user: Mapped[User] = relationship()


class Group(Base):
    """Named community with role-gated membership."""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    image: Mapped[str | None] = mapped_column(String(512))
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    max_members: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    creator_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    creator: Mapped[User | None] = relationship()
    members: Mapped[list["GroupMember"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="GroupMember.id",
    )
    messages: Mapped[list["Message"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
    )

    def member_for(self, user_id: int) -> "GroupMember | None":
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None


class GroupMember(Base):
    """Membership of a user in a group."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
        Index("ix_group_members_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[GroupRole] = mapped_column(
        _enum(GroupRole, "group_role"), default=GroupRole.MEMBER, nullable=False
    )
    muted_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    nickname: Mapped[str | None] = mapped_column(String(50))
    joined_at: Mapped[datetime] = _created_at()

    group: Mapped[Group] = relationship(back_populates="members")
    user: Mapped[User] = relationship()


class Message(Base):
    """Message posted into a conversation or a group."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "(conversation_id IS NULL) <> (group_id IS NULL)",
            name="ck_message_single_thread",
        ),
        Index("ix_messages_conversation_created_at", "conversation_id", "created_at"),
        Index("ix_messages_group_created_at", "group_id", "created_at"),
        Index("ix_messages_sender", "sender_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    conversation_id: Mapped[int | None] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=True
    )
    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=True
    )
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[MessageType] = mapped_column(
        _enum(MessageType, "message_type"), default=MessageType.TEXT, nullable=False
    )
    reply_to_id: Mapped[int | None] = mapped_column(
        ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    conversation: Mapped[Conversation | None] = relationship(back_populates="messages")
    group: Mapped[Group | None] = relationship(back_populates="messages")
    sender: Mapped[User] = relationship()
    reply_to: Mapped[Message | None] = relationship(remote_side="Message.id")
    reactions: Mapped[list["MessageReaction"]] = relationship(
        back_populates="message", cascade="all, delete-orphan"
    )
    receipts: Mapped[list["ReadReceipt"]] = relationship(
        back_populates="message", cascade="all, delete-orphan"
    )


class MessageReaction(Base):
    """Individual emoji reactions for a message."""

    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reaction"),
        Index("ix_reactions_message", "message_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = _created_at()

    message: Mapped[Message] = relationship(back_populates="reactions")
    user: Mapped[User] = relationship()


class ReadReceipt(Base):
    """Per-user read marker for a message."""

    __tablename__ = "read_receipts"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_read_receipt"),
        Index("ix_read_receipts_message", "message_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    message_id: Mapped[int] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at: Mapped[datetime] = _created_at()

    message: Mapped[Message] = relationship(back_populates="receipts")
    user: Mapped[User] = relationship()


class TypingIndicator(Base):
    """Liveness flag of a user typing into a conversation or group."""

    __tablename__ = "typing_indicators"
    __table_args__ = (
        UniqueConstraint("user_id", "conversation_id", name="uq_typing_conversation"),
        UniqueConstraint("user_id", "group_id", name="uq_typing_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    conversation_id: Mapped[int | None] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=True
    )
    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=True
    )
    is_typing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = _updated_at()

    user: Mapped[User] = relationship()


class Call(Base):
    """Signaling record of an audio or video call between two users."""

    __tablename__ = "calls"
    __table_args__ = (
        Index("ix_calls_receiver_status", "receiver_id", "status"),
        Index("ix_calls_initiator_status", "initiator_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    initiator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[CallType] = mapped_column(
        _enum(CallType, "call_type"), default=CallType.AUDIO, nullable=False
    )
    status: Mapped[CallStatus] = mapped_column(
        _enum(CallStatus, "call_status"), default=CallStatus.PENDING, nullable=False
    )
    offer: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    answer: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    ice_candidates: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    started_at: Mapped[datetime] = _created_at()
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int | None] = mapped_column(Integer)

    initiator: Mapped[User] = relationship(foreign_keys=[initiator_id])
    receiver: Mapped[User] = relationship(foreign_keys=[receiver_id])

    def involves(self, user_id: int) -> bool:
        return user_id in (self.initiator_id, self.receiver_id)
