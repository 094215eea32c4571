from __future__ import annotations

from enum import Enum


class PresenceStatus(str, Enum):
    """User-configurable presence indicator."""

    ONLINE = "online"
    AWAY = "away"
    BUSY = "busy"
    OFFLINE = "offline"
    INVISIBLE = "invisible"


class UserRole(str, Enum):
    """Platform wide role of an account."""

    USER = "user"
    ADMIN = "admin"


class ChatRequestStatus(str, Enum):
    """Lifecycle states for chat requests."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ConversationRole(str, Enum):
    """Role of a participant inside a conversation."""

    ADMIN = "admin"
    MEMBER = "member"


class GroupRole(str, Enum):
    """Roles that a user can have inside a group."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def _missing_(cls, value):
        # older clients still send the legacy name for the top role
        if isinstance(value, str) and value.lower() == "creator":
            return cls.OWNER
        return None

    @property
    def rank(self) -> int:
        return _GROUP_ROLE_RANKS[self]


_GROUP_ROLE_RANKS = {GroupRole.OWNER: 0, GroupRole.ADMIN: 1, GroupRole.MEMBER: 2}


class MessageType(str, Enum):
    """Kinds of content a message can carry."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    CALL = "call"


class CallType(str, Enum):
    """Media kind negotiated for a call."""

    AUDIO = "audio"
    VIDEO = "video"


class CallStatus(str, Enum):
    """Lifecycle states of a call."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    ACTIVE = "active"
    REJECTED = "rejected"
    MISSED = "missed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
