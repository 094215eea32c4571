"""create initial tables

Revision ID: 20261018_01
Revises: 
Create Date: 2026-10-18 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None


PRESENCE_STATUS = sa.Enum("online", "away", "busy", "offline", "invisible", name="presence_status")
USER_ROLE = sa.Enum("user", "admin", name="user_role")
CHAT_REQUEST_STATUS = sa.Enum("pending", "accepted", "rejected", name="chat_request_status")
CONVERSATION_ROLE = sa.Enum("admin", "member", name="conversation_role")
GROUP_ROLE = sa.Enum("owner", "admin", "member", name="group_role")
MESSAGE_TYPE = sa.Enum("text", "image", "file", "document", "audio", "video", "call", name="message_type")
CALL_TYPE = sa.Enum("audio", "video", name="call_type")
CALL_STATUS = sa.Enum(
    "pending", "accepted", "active", "rejected", "missed", "cancelled", "completed", name="call_status"
)


def _timestamp(name: str, *, onupdate: bool = False) -> sa.Column:
    if onupdate:
        return sa.Column(
            name,
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        )
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("real_name", sa.String(length=100), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("hobbies", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=128), nullable=True),
        sa.Column("website", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=32), nullable=True),
        sa.Column("occupation", sa.String(length=128), nullable=True),
        sa.Column("status", PRESENCE_STATUS, nullable=False, server_default="offline"),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False, server_default="user"),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "chat_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("receiver_id", sa.Integer(), nullable=False),
        sa.Column("status", CHAT_REQUEST_STATUS, nullable=False, server_default="pending"),
        sa.Column("message", sa.String(length=500), nullable=True),
        sa.Column("active_pair_key", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("active_pair_key", name="uq_chat_request_active_pair"),
        mysql_charset="utf8mb4",
    )
    op.create_index(
        "ix_chat_requests_sender_receiver",
        "chat_requests",
        ["sender_id", "receiver_id", "created_at"],
    )
    op.create_index("ix_chat_requests_receiver", "chat_requests", ["receiver_id"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("user_a_id", sa.Integer(), nullable=True),
        sa.Column("user_b_id", sa.Integer(), nullable=True),
        sa.Column("creator_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.ForeignKeyConstraint(["user_a_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_b_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_direct_conversation_pair"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "conversation_users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", CONVERSATION_ROLE, nullable=False, server_default="member"),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cleared_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("joined_at"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("conversation_id", "user_id", name="uq_conversation_user"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_members", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("creator_id", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", GROUP_ROLE, nullable=False, server_default="member"),
        sa.Column("muted_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("nickname", sa.String(length=50), nullable=True),
        _timestamp("joined_at"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_member"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_group_members_user", "group_members", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", MESSAGE_TYPE, nullable=False, server_default="text"),
        sa.Column("reply_to_id", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("updated_at", onupdate=True),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reply_to_id"], ["messages.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "(conversation_id IS NULL) <> (group_id IS NULL)",
            name="ck_message_single_thread",
        ),
        mysql_charset="utf8mb4",
    )
    op.create_index(
        "ix_messages_conversation_created_at", "messages", ["conversation_id", "created_at"]
    )
    op.create_index("ix_messages_group_created_at", "messages", ["group_id", "created_at"])
    op.create_index("ix_messages_sender", "messages", ["sender_id"])

    op.create_table(
        "message_reactions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("emoji", sa.String(length=32), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reaction"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_reactions_message", "message_reactions", ["message_id"])

    op.create_table(
        "read_receipts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        _timestamp("read_at"),
        sa.ForeignKeyConstraint(["message_id"], ["messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("message_id", "user_id", name="uq_read_receipt"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_read_receipts_message", "read_receipts", ["message_id"])

    op.create_table(
        "typing_indicators",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("is_typing", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("updated_at", onupdate=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "conversation_id", name="uq_typing_conversation"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_typing_group"),
        mysql_charset="utf8mb4",
    )

    op.create_table(
        "calls",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("initiator_id", sa.Integer(), nullable=False),
        sa.Column("receiver_id", sa.Integer(), nullable=False),
        sa.Column("type", CALL_TYPE, nullable=False, server_default="audio"),
        sa.Column("status", CALL_STATUS, nullable=False, server_default="pending"),
        sa.Column("offer", sa.JSON(), nullable=True),
        sa.Column("answer", sa.JSON(), nullable=True),
        sa.Column("ice_candidates", sa.JSON(), nullable=True),
        _timestamp("started_at"),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["initiator_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_calls_receiver_status", "calls", ["receiver_id", "status"])
    op.create_index("ix_calls_initiator_status", "calls", ["initiator_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_calls_initiator_status", table_name="calls")
    op.drop_index("ix_calls_receiver_status", table_name="calls")
    op.drop_table("calls")
    op.drop_table("typing_indicators")
    op.drop_index("ix_read_receipts_message", table_name="read_receipts")
    op.drop_table("read_receipts")
    op.drop_index("ix_reactions_message", table_name="message_reactions")
    op.drop_table("message_reactions")
    op.drop_index("ix_messages_sender", table_name="messages")
    op.drop_index("ix_messages_group_created_at", table_name="messages")
    op.drop_index("ix_messages_conversation_created_at", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_group_members_user", table_name="group_members")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("conversation_users")
    op.drop_table("conversations")
    op.drop_index("ix_chat_requests_receiver", table_name="chat_requests")
    op.drop_index("ix_chat_requests_sender_receiver", table_name="chat_requests")
    op.drop_table("chat_requests")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        CALL_STATUS,
        CALL_TYPE,
        MESSAGE_TYPE,
        GROUP_ROLE,
        CONVERSATION_ROLE,
        CHAT_REQUEST_STATUS,
        USER_ROLE,
        PRESENCE_STATUS,
    ):
        enum.drop(bind, checkfirst=False)
