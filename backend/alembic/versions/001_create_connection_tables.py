"""Create members, connection_requests and notifications tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema for the member directory, the connection ledger and
       member notifications.
How:   The pair invariants of the ledger are partial unique indexes on
       `pair_key`; see guildhall/models/connection_request.py.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
            comment="pending, active, suspended, archived",
        ),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'member'"),
            comment="member, moderator, editor, admin",
        ),
        sa.Column("profession", sa.String(255), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        sa.Column("area", sa.String(100), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("profile_image", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'suspended', 'archived')",
            name="ck_members_status",
        ),
        sa.CheckConstraint(
            "role IN ('member', 'moderator', 'editor', 'admin')",
            name="ck_members_role",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_members_status", "members", ["status"])

    op.create_table(
        "connection_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("from_member_id", sa.Uuid(), nullable=False),
        sa.Column("to_member_id", sa.Uuid(), nullable=False),
        sa.Column("pair_key", sa.String(73), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'pending'"),
            comment="pending, accepted, rejected, cancelled",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "from_member_id <> to_member_id",
            name="ck_connection_requests_not_self",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="ck_connection_requests_status",
        ),
        sa.ForeignKeyConstraint(["from_member_id"], ["members.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    # At most one pending and one accepted row per unordered pair
    op.create_index(
        "uq_connection_requests_pending_pair",
        "connection_requests",
        ["pair_key"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        "uq_connection_requests_accepted_pair",
        "connection_requests",
        ["pair_key"],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
        sqlite_where=sa.text("status = 'accepted'"),
    )
    op.create_index(
        "idx_connection_requests_to_status",
        "connection_requests",
        ["to_member_id", "status"],
    )
    op.create_index(
        "idx_connection_requests_from_status",
        "connection_requests",
        ["from_member_id", "status"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column(
            "type",
            sa.String(30),
            nullable=False,
            server_default=sa.text("'general'"),
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column(
            "is_read",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "type IN ('connection_request', 'connection_accepted', 'general')",
            name="ck_notifications_type",
        ),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notifications_member_created",
        "notifications",
        ["member_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_notifications_member_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_connection_requests_from_status", table_name="connection_requests")
    op.drop_index("idx_connection_requests_to_status", table_name="connection_requests")
    op.drop_index("uq_connection_requests_accepted_pair", table_name="connection_requests")
    op.drop_index("uq_connection_requests_pending_pair", table_name="connection_requests")
    op.drop_table("connection_requests")
    op.drop_index("idx_members_status", table_name="members")
    op.drop_table("members")
