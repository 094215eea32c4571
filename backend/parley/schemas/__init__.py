"""Pydantic schemas for API payloads."""

from .admin import (
    AdminGroupRead,
    AdminGroupResult,
    AdminGroupUpdate,
    AdminStats,
    AdminUserList,
    AdminUserRead,
    AdminUserResult,
    AdminUserUpdate,
    DeletedCount,
)
from .auth import DeleteAccountRequest, LoginRequest, LogoutRequest, RefreshRequest, Token, UserCreate
from .calls import CallCreate, CallHistoryEntry, CallPollRead, CallRead, CallUpdate
from .chat_requests import (
    ChatRequestAction,
    ChatRequestCreate,
    ChatRequestCreated,
    ChatRequestRead,
    ChatRequestResponse,
)
from .common import MessageResponse
from .conversations import (
    ConversationAction,
    ConversationCreate,
    ConversationLeft,
    ConversationRead,
    ConversationSettingsRead,
    ConversationSettingsUpdate,
    ParticipantRead,
)
from .groups import GroupCreate, GroupDetail, GroupMemberAdd, GroupMemberRead, GroupMemberUpdate, GroupRead, GroupUpdate
from .messages import (
    MessageCreate,
    MessagePageRead,
    MessageRead,
    MessageUpdate,
    ReactionCreate,
    ReactionSummary,
    ReactionToggleRead,
    ReadReceiptRead,
    ReadReceiptsCreate,
    ReadReceiptsMarked,
    ReadReceiptsRead,
    ReplyPreview,
    TypingRead,
    TypingUpdate,
)
from .uploads import UploadDelete, UploadRead
from .users import ConnectionRead, ProfileRead, ProfileUpdate, PublicUser, StatusRead, StatusUpdate, UserRead

__all__ = [
    "AdminGroupRead",
    "AdminGroupResult",
    "AdminGroupUpdate",
    "AdminStats",
    "AdminUserList",
    "AdminUserRead",
    "AdminUserResult",
    "AdminUserUpdate",
    "DeletedCount",
    "DeleteAccountRequest",
    "LoginRequest",
    "LogoutRequest",
    "RefreshRequest",
    "Token",
    "UserCreate",
    "CallCreate",
    "CallHistoryEntry",
    "CallPollRead",
    "CallRead",
    "CallUpdate",
    "ChatRequestAction",
    "ChatRequestCreate",
    "ChatRequestCreated",
    "ChatRequestRead",
    "ChatRequestResponse",
    "MessageResponse",
    "ConversationAction",
    "ConversationCreate",
    "ConversationLeft",
    "ConversationRead",
    "ConversationSettingsRead",
    "ConversationSettingsUpdate",
    "ParticipantRead",
    "GroupCreate",
    "GroupDetail",
    "GroupMemberAdd",
    "GroupMemberRead",
    "GroupMemberUpdate",
    "GroupRead",
    "GroupUpdate",
    "MessageCreate",
    "MessagePageRead",
    "MessageRead",
    "MessageUpdate",
    "ReactionCreate",
    "ReactionSummary",
    "ReactionToggleRead",
    "ReadReceiptRead",
    "ReadReceiptsCreate",
    "ReadReceiptsMarked",
    "ReadReceiptsRead",
    "ReplyPreview",
    "TypingRead",
    "TypingUpdate",
    "UploadDelete",
    "UploadRead",
    "ConnectionRead",
    "ProfileRead",
    "ProfileUpdate",
    "PublicUser",
    "StatusRead",
    "StatusUpdate",
    "UserRead",
]
