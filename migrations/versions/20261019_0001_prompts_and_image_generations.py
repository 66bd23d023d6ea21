"""prompts and image generations

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "prompts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("original_input", sa.Text(), nullable=False),
        sa.Column("enhanced_prompt", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="realistic"),
        sa.Column("template_id", sa.String(length=64), nullable=True),
        sa.Column("style_preferences_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_prompts_category_created_at", "prompts", ["category", "created_at"], unique=False)

    op.create_table(
        "image_generations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("prompt_id", sa.String(length=36), nullable=False),
        sa.Column("requested_provider", sa.String(length=32), nullable=True),
        sa.Column("provider", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="queued"),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("generation_time_ms", sa.Integer(), nullable=True),
        sa.Column("cost_cents", sa.Integer(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'completed', 'failed')",
            name="ck_image_generations_status",
        ),
        sa.ForeignKeyConstraint(["prompt_id"], ["prompts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_image_generations_prompt_id", "image_generations", ["prompt_id"], unique=False)
    op.create_index(
        "ix_image_generations_status_created_at",
        "image_generations",
        ["status", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_image_generations_provider_created_at",
        "image_generations",
        ["provider", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_image_generations_provider_created_at", table_name="image_generations")
    op.drop_index("ix_image_generations_status_created_at", table_name="image_generations")
    op.drop_index("ix_image_generations_prompt_id", table_name="image_generations")
    op.drop_table("image_generations")

    op.drop_index("ix_prompts_category_created_at", table_name="prompts")
    op.drop_table("prompts")
