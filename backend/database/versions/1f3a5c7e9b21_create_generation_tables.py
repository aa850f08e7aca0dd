"""create generation tables

Revision ID: 1f3a5c7e9b21
Revises:
Create Date: 2026-10-16 10:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "1f3a5c7e9b21"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "motion_videos",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=False),
        sa.Column("thumbnail_path", sa.String(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "concept_images",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("storage_path", sa.String(), nullable=False),
        sa.Column("public_url", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "generations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="video"),
        sa.Column("provider", sa.String(), nullable=False, server_default="replicate"),
        sa.Column("prediction_id", sa.String(), nullable=True),
        sa.Column("member_id", sa.String(), nullable=True),
        sa.Column("music_id", sa.String(), nullable=True),
        sa.Column("motion_video_id", sa.UUID(), nullable=True),
        sa.Column("concept_image_id", sa.UUID(), nullable=True),
        sa.Column("motion_preset_id", sa.String(), nullable=True),
        sa.Column("prompt", sa.String(), nullable=True),
        sa.Column("resolution", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=False),
        sa.Column("motion_video_url", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("video_url", sa.String(), nullable=True),
        sa.Column("storage_path", sa.String(), nullable=True),
        sa.Column("output_url", sa.String(), nullable=True),
        sa.Column("output_storage_path", sa.String(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("upscale_status", sa.String(), nullable=True),
        sa.Column("upscale_model", sa.String(), nullable=True),
        sa.Column("upscale_prediction_id", sa.String(), nullable=True),
        sa.Column("upscaled_video_url", sa.String(), nullable=True),
        sa.Column("upscaled_storage_path", sa.String(), nullable=True),
        sa.Column("upscale_error_message", sa.String(), nullable=True),
        sa.Column("upscale_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["motion_video_id"], ["motion_videos.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["concept_image_id"], ["concept_images.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_generations_status", "generations", ["status"], unique=False)
    op.create_index("ix_generations_created_at", "generations", ["created_at"], unique=False)
    op.create_index("ix_generations_motion_video", "generations", ["motion_video_id"], unique=False)
    op.create_index("ix_generations_concept_image", "generations", ["concept_image_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_generations_concept_image", table_name="generations")
    op.drop_index("ix_generations_motion_video", table_name="generations")
    op.drop_index("ix_generations_created_at", table_name="generations")
    op.drop_index("ix_generations_status", table_name="generations")
    op.drop_table("generations")
    op.drop_table("concept_images")
    op.drop_table("motion_videos")
