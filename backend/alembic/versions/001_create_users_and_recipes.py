"""Create users and recipes tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates `users` (read-only for this service) and `recipes`.
How:   PostgreSQL UUID keys, JSONB ingredient/instruction arrays,
       TIMESTAMP WITH TIME ZONE, CHECK constraints for the image pair,
       serving size and non-negative times.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "recipes",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "ingredients",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Ordered list of ingredient strings",
        ),
        sa.Column(
            "instructions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Ordered list of instruction steps",
        ),
        sa.Column("prep_time_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cooking_time_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("serving_size", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "thumbnail_image_url",
            sa.Text(),
            nullable=True,
            comment="Public URL of the 400x300 JPEG derivative",
        ),
        sa.Column(
            "large_image_url",
            sa.Text(),
            nullable=True,
            comment="Public URL of the 1200x800 JPEG derivative",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "(thumbnail_image_url IS NULL) = (large_image_url IS NULL)",
            name="ck_recipes_image_pair",
        ),
        sa.CheckConstraint("serving_size >= 1", name="ck_recipes_serving_size"),
        sa.CheckConstraint(
            "prep_time_minutes >= 0 AND cooking_time_minutes >= 0",
            name="ck_recipes_times",
        ),
        sa.CheckConstraint("updated_at >= created_at", name="ck_recipes_updated_after_created"),
    )

    # Public listing: WHERE is_published ORDER BY created_at DESC
    op.create_index(
        "idx_recipes_published_created",
        "recipes",
        ["is_published", sa.text("created_at DESC")],
    )
    # Author listing: WHERE author_id = ? ORDER BY created_at DESC
    op.create_index(
        "idx_recipes_author_created",
        "recipes",
        ["author_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_recipes_author_created", table_name="recipes")
    op.drop_index("idx_recipes_published_created", table_name="recipes")
    op.drop_table("recipes")
    op.drop_table("users")
