"""add character tables

Revision ID: 4b8d2e6f0a13
Revises: 1f3a5c7e9b21
Create Date: 2026-10-16 14:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "4b8d2e6f0a13"
down_revision = "1f3a5c7e9b21"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "characters",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("video", sa.String(), nullable=True),
        sa.Column("poster", sa.String(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "character_images",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("character_id", sa.String(), nullable=False),
        sa.Column("variant_id", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=False),
        sa.Column("public_url", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["character_id"], ["characters.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("character_id", "variant_id", name="uq_character_images_variant"),
    )


def downgrade() -> None:
    op.drop_table("character_images")
    op.drop_table("characters")
