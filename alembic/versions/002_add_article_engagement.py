"""Add article_views and article_likes tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-01 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "article_views",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("article_id", sa.Integer, sa.ForeignKey("articles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_address", sa.String(255), nullable=False),
        sa.Column("user_agent", sa.Text, nullable=False, server_default="unknown"),
        sa.Column("referrer", sa.Text, nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_article_views_article_id", "article_views", ["article_id"])
    op.create_index("ix_article_views_dedup", "article_views", ["article_id", "source_address", "viewed_at"])

    op.create_table(
        "article_likes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("article_id", sa.Integer, sa.ForeignKey("articles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("article_id", "user_id", name="uq_article_like_user"),
    )
    op.create_index("ix_article_likes_article_id", "article_likes", ["article_id"])


def downgrade() -> None:
    op.drop_table("article_likes")
    op.drop_table("article_views")
