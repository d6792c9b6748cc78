"""create staff, verification session and login attempt tables

Revision ID: 4d1f7a9c2e60
Revises:
Create Date: 2026-10-19 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4d1f7a9c2e60"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "staff_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("roblox_username", sa.String(length=64), nullable=False),
        sa.Column("roblox_user_id", sa.BigInteger(), nullable=True),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("pin_hash", sa.String(length=255), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("avatar_url", sa.String(length=512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("last_active", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("roblox_user_id"),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f("ix_staff_members_roblox_username"), "staff_members", ["roblox_username"], unique=True)
    op.create_index(op.f("ix_staff_members_role"), "staff_members", ["role"], unique=False)
    op.create_index(op.f("ix_staff_members_is_active"), "staff_members", ["is_active"], unique=False)
    op.create_index(op.f("ix_staff_members_created_at"), "staff_members", ["created_at"], unique=False)

    op.create_table(
        "verification_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("roblox_username", sa.String(length=64), nullable=False),
        sa.Column("roblox_user_id", sa.BigInteger(), nullable=True),
        sa.Column("verification_code", sa.String(length=32), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        op.f("ix_verification_sessions_roblox_username"), "verification_sessions", ["roblox_username"], unique=False
    )
    op.create_index(
        op.f("ix_verification_sessions_verification_code"),
        "verification_sessions",
        ["verification_code"],
        unique=False,
    )
    op.create_index(op.f("ix_verification_sessions_expires_at"), "verification_sessions", ["expires_at"], unique=False)
    op.create_index(op.f("ix_verification_sessions_created_at"), "verification_sessions", ["created_at"], unique=False)

    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("roblox_username", sa.String(length=64), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_login_attempts_created_at"), "login_attempts", ["created_at"], unique=False)
    op.create_index(
        "ix_login_attempts_username_success_created",
        "login_attempts",
        ["roblox_username", "success", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_login_attempts_ip_success_created",
        "login_attempts",
        ["ip_address", "success", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_login_attempts_ip_success_created", table_name="login_attempts")
    op.drop_index("ix_login_attempts_username_success_created", table_name="login_attempts")
    op.drop_index(op.f("ix_login_attempts_created_at"), table_name="login_attempts")
    op.drop_table("login_attempts")
    op.drop_index(op.f("ix_verification_sessions_created_at"), table_name="verification_sessions")
    op.drop_index(op.f("ix_verification_sessions_expires_at"), table_name="verification_sessions")
    op.drop_index(op.f("ix_verification_sessions_verification_code"), table_name="verification_sessions")
    op.drop_index(op.f("ix_verification_sessions_roblox_username"), table_name="verification_sessions")
    op.drop_table("verification_sessions")
    op.drop_index(op.f("ix_staff_members_created_at"), table_name="staff_members")
    op.drop_index(op.f("ix_staff_members_is_active"), table_name="staff_members")
    op.drop_index(op.f("ix_staff_members_role"), table_name="staff_members")
    op.drop_index(op.f("ix_staff_members_roblox_username"), table_name="staff_members")
    op.drop_table("staff_members")
