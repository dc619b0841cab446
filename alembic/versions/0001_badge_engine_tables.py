"""Badge engine tables

Create users, user_metrics, badges and user_badges.  user_badges carries a
partial unique index so each user holds at most one non-revoked award per
badge.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email_verified", sa.Boolean(), server_default=sa.false()),
        sa.Column("banned", sa.Boolean(), server_default=sa.false()),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.false()),
        sa.Column("socials", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "user_metrics",
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("metric", sa.String(50), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "metric"),
    )

    op.create_table(
        "badges",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False, server_default="ACHIEVEMENT"),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="COMMON"),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("icon", sa.String(200), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("criteria", postgresql.JSONB(), nullable=True),
        sa.Column("trigger_events", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_badges_active", "badges", ["is_active"])

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("badge_id", sa.String(64), nullable=False),
        sa.Column(
            "earned_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_visible", sa.Boolean(), server_default=sa.true()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["badge_id"], ["badges.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_user_badges_active",
        "user_badges",
        ["user_id", "badge_id"],
        unique=True,
        postgresql_where=sa.text("revoked_at IS NULL"),
        sqlite_where=sa.text("revoked_at IS NULL"),
    )
    op.create_index("ix_user_badges_badge", "user_badges", ["badge_id"])


def downgrade() -> None:
    op.drop_index("ix_user_badges_badge", table_name="user_badges")
    op.drop_index("uq_user_badges_active", table_name="user_badges")
    op.drop_table("user_badges")
    op.drop_index("ix_badges_active", table_name="badges")
    op.drop_table("badges")
    op.drop_table("user_metrics")
    op.drop_table("users")
