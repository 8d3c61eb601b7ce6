"""Initial schema for the AI recommendation pipeline.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Auth sessions table
    op.create_table(
        "auth_sessions",
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("token"),
    )

    # Content items table
    op.create_table(
        "content_items",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("tags_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("skill_level", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="published"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "content_type IN ('resource', 'learning_path', 'post', 'event', 'project')",
            name="ck_content_items_type",
        ),
        sa.PrimaryKeyConstraint("content_id"),
    )
    op.create_index("ix_content_items_author", "content_items", ["author_id"])
    op.create_index(
        "ix_content_items_type_created", "content_items", ["content_type", "created_at"]
    )

    # Bookmarks table
    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["content_id"], ["content_items.content_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "content_id", name="uq_bookmarks_user_content"),
    )

    # Content embeddings table
    op.create_table(
        "content_embeddings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("embedding_json", sa.Text(), nullable=False),
        sa.Column("embedding_model", sa.String(), nullable=False),
        sa.Column("dimensions", sa.Integer(), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "content_type IN ('resource', 'learning_path', 'post')",
            name="ck_content_embeddings_type",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "content_type", "content_id", name="uq_content_embeddings_type_id"
        ),
    )
    op.create_index(
        "ix_content_embeddings_type_model",
        "content_embeddings",
        ["content_type", "embedding_model"],
    )

    # Content analysis table
    op.create_table(
        "content_analysis",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=True),
        sa.Column("topics_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("target_audience", sa.String(), nullable=False, server_default="general"),
        sa.Column(
            "difficulty_level", sa.String(), nullable=False, server_default="intermediate"
        ),
        sa.Column("key_takeaways_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("embedding_json", sa.Text(), nullable=True),
        sa.Column("embedding_model", sa.String(), nullable=True),
        sa.Column("moderation_flagged", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("analyzed_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "difficulty_level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_content_analysis_difficulty",
        ),
        sa.PrimaryKeyConstraint("content_id"),
    )

    # Failed analysis attempts
    op.create_table(
        "content_analysis_failures",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_failed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("content_id"),
    )

    # User activities table
    op.create_table(
        "user_activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("activity_type", sa.String(), nullable=False),
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "activity_type IN ('view', 'like', 'comment', 'share', 'bookmark', 'create')",
            name="ck_user_activities_type",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_user_activities_user_created", "user_activities", ["user_id", "created_at"]
    )

    # User interests table
    op.create_table(
        "user_interests",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("primary_interests_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("secondary_interests_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("skills_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("content_preferences_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("learning_goals_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # User preferences analysis table
    op.create_table(
        "user_preferences_analysis",
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("category_preferences_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("tag_preferences_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column(
            "skill_level_preferences_json", sa.Text(), nullable=False, server_default="{}"
        ),
        sa.Column("interaction_patterns_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("last_analyzed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # AI recommendations table
    op.create_table(
        "ai_recommendations",
        sa.Column("rec_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("recommendation_type", sa.String(), nullable=False),
        sa.Column("item_id", sa.String(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False, server_default="0.0"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_clicked", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("score >= 0 AND score <= 1", name="ck_ai_recommendations_score"),
        sa.PrimaryKeyConstraint("rec_id"),
        sa.UniqueConstraint(
            "user_id",
            "recommendation_type",
            "item_id",
            name="uq_ai_recommendations_user_type_item",
        ),
    )
    op.create_index(
        "ix_ai_recommendations_user_updated", "ai_recommendations", ["user_id", "updated_at"]
    )

    # AI feedback table
    op.create_table(
        "ai_feedback",
        sa.Column("feedback_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("recommendation_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("feedback_type", sa.String(), nullable=False),
        sa.Column("feedback_text", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "feedback_type IN ('helpful', 'not_helpful', 'save', 'dismiss')",
            name="ck_ai_feedback_type",
        ),
        sa.ForeignKeyConstraint(
            ["recommendation_id"], ["ai_recommendations.rec_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("feedback_id"),
    )
    op.create_index("ix_ai_feedback_recommendation", "ai_feedback", ["recommendation_id"])


def downgrade() -> None:
    op.drop_table("ai_feedback")
    op.drop_table("ai_recommendations")
    op.drop_table("user_preferences_analysis")
    op.drop_table("user_interests")
    op.drop_table("user_activities")
    op.drop_table("content_analysis_failures")
    op.drop_table("content_analysis")
    op.drop_table("content_embeddings")
    op.drop_table("bookmarks")
    op.drop_table("content_items")
    op.drop_table("auth_sessions")
    op.drop_table("users")
