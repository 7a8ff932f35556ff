"""create users and mood_boards

Revision ID: 7c1e4d2a9b30
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "7c1e4d2a9b30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("subscription_id", sa.String(), nullable=True),
        sa.Column(
            "subscription_status",
            sa.String(),
            nullable=False,
            server_default="inactive",
        ),
        sa.Column(
            "subscription_tier",
            sa.String(),
            nullable=False,
            server_default="free",
        ),
        sa.Column(
            "images_used_this_month",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column(
            "images_limit_per_month",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("last_reset_date", sa.Date(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "images_used_this_month >= 0",
            name="ck_users_images_used_non_negative",
        ),
        sa.CheckConstraint(
            "images_limit_per_month >= 0",
            name="ck_users_images_limit_non_negative",
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )
    op.create_index(
        "ix_users_subscription_id",
        "users",
        ["subscription_id"],
    )

    op.create_table(
        "mood_boards",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("style", sa.String(), nullable=False),
        sa.Column("room_type", sa.String(), nullable=False),
        sa.Column("color_palette", sa.JSON(), nullable=True),
        sa.Column("budget", sa.String(), nullable=True),
        sa.Column(
            "status",
            sa.String(),
            nullable=False,
            server_default="completed",
        ),
        sa.Column("ai_prompt", sa.Text(), nullable=True),
        sa.Column(
            "provider",
            sa.String(),
            nullable=False,
            server_default="dall-e-3",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_mood_boards_user_id", "mood_boards", ["user_id"])
    op.create_index(
        "ix_mood_boards_user_created",
        "mood_boards",
        ["user_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_mood_boards_user_created", table_name="mood_boards")
    op.drop_index("ix_mood_boards_user_id", table_name="mood_boards")
    op.drop_table("mood_boards")
    op.drop_index("ix_users_subscription_id", table_name="users")
    op.drop_table("users")
