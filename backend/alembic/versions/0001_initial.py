"""initial schema (properties, property images, review queue, moderation logs)

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "property_images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("file_path", sa.String(length=512), nullable=True),
        sa.Column("original_filename", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("content_type", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("moderation_status", sa.String(length=20), nullable=False),
        sa.Column("moderation_reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("reason_code", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("confidence_scores_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("flagged_labels_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("property_labels_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_property_images_property_id", "property_images", ["property_id"])
    op.create_index("ix_property_images_moderation_status", "property_images", ["moderation_status"])
    op.create_index("ix_property_images_reason_code", "property_images", ["reason_code"])

    op.create_table(
        "moderation_review_queue",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("property_images.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        sa.Column("reviewer_id", sa.Integer(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("image_id", name="uq_moderation_review_queue_image_id"),
    )
    op.create_index("ix_moderation_review_queue_image_id", "moderation_review_queue", ["image_id"])
    op.create_index("ix_moderation_review_queue_status", "moderation_review_queue", ["status"])

    op.create_table(
        "moderation_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=40), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_moderation_logs_actor_user_id", "moderation_logs", ["actor_user_id"])
    op.create_index("ix_moderation_logs_entity_type", "moderation_logs", ["entity_type"])
    op.create_index("ix_moderation_logs_entity_id", "moderation_logs", ["entity_id"])
    op.create_index("ix_moderation_logs_action", "moderation_logs", ["action"])


def downgrade() -> None:
    op.drop_table("moderation_logs")
    op.drop_table("moderation_review_queue")
    op.drop_table("property_images")
    op.drop_table("properties")
