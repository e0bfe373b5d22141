"""create chat tables

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


PRESENCE_STATUS = sa.Enum("online", "away", "busy", "offline", name="presence_status")
ATTACHMENT_KIND = sa.Enum("image", "video", name="attachment_kind")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=32), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("refresh_token", sa.String(length=512), nullable=True),
        sa.Column("status", PRESENCE_STATUS, nullable=False, server_default="offline"),
        sa.Column("status_text", sa.String(length=128), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("pronouns", sa.String(length=32), nullable=True),
        sa.Column("custom_color", sa.String(length=16), nullable=True),
        sa.Column("avatar_ref", sa.String(length=512), nullable=True),
        sa.Column("banner_ref", sa.String(length=512), nullable=True),
        sa.Column("is_suspended", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "last_seen",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column(
            "author_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text(), nullable=False, server_default=""),
        sa.Column("has_markdown", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attachment_ref", sa.String(length=512), nullable=True),
        sa.Column("attachment_kind", ATTACHMENT_KIND, nullable=True),
        sa.Column("attachment_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("gif_url", sa.String(length=1024), nullable=True),
        sa.Column("mentions", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_messages_author_id", "messages", ["author_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])
    op.create_index("ix_messages_attachment_expires_at", "messages", ["attachment_expires_at"])


def downgrade() -> None:
    op.drop_index("ix_messages_attachment_expires_at", table_name="messages")
    op.drop_index("ix_messages_created_at", table_name="messages")
    op.drop_index("ix_messages_author_id", table_name="messages")
    op.drop_table("messages")
    op.drop_table("users")

    bind = op.get_bind()
    ATTACHMENT_KIND.drop(bind, checkfirst=True)
    PRESENCE_STATUS.drop(bind, checkfirst=True)
