"""Database models package."""

from .base import Base
from .chat import (
    Call,
    ChatRequest,
    Conversation,
    ConversationUser,
    Group,
    GroupMember,
    Message,
    MessageReaction,
    ReadReceipt,
    TypingIndicator,
    User,
)
from .enums import (
    CallStatus,
    CallType,
    ChatRequestStatus,
    ConversationRole,
    GroupRole,
    MessageType,
    PresenceStatus,
    UserRole,
)

__all__ = [
    "Base",
    "User",
    "ChatRequest",
    "Conversation",
    "ConversationUser",
    "Group",
    "GroupMember",
    "Message",
    "MessageReaction",
    "ReadReceipt",
    "TypingIndicator",
    "Call",
    "CallStatus",
    "CallType",
    "ChatRequestStatus",
    "ConversationRole",
    "GroupRole",
    "MessageType",
    "PresenceStatus",
    "UserRole",
]
