"""SQLAlchemy ORM models for LearnHub."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnhub.storage.db import Base


class User(Base):
    """Community member."""

    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    username: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    sessions: Mapped[list["AuthSession"]] = relationship(
        "AuthSession", back_populates="user", cascade="all, delete-orphan"
    )


class AuthSession(Base):
    """Bearer token issued by the auth platform."""

    __tablename__ = "auth_sessions"

    token: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sessions")


class ContentItem(Base):
    """Resources, learning paths, posts, events and projects."""

    __tablename__ = "content_items"

    content_id: Mapped[str] = mapped_column(String, primary_key=True)
    content_type: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_id: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    tags_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    skill_level: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="published")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "content_type IN ('resource', 'learning_path', 'post', 'event', 'project')",
            name="ck_content_items_type",
        ),
        Index("ix_content_items_author", "author_id"),
        Index("ix_content_items_type_created", "content_type", "created_at"),
    )


class Bookmark(Base):
    """Content saved by a user."""

    __tablename__ = "bookmarks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    content_id: Mapped[str] = mapped_column(
        String, ForeignKey("content_items.content_id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    content: Mapped["ContentItem"] = relationship("ContentItem")

    __table_args__ = (
        UniqueConstraint("user_id", "content_id", name="uq_bookmarks_user_content"),
    )


class ContentEmbedding(Base):
    """Version-stamped embedding of a content item used for vector search."""

    __tablename__ = "content_embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String, nullable=False)
    content_id: Mapped[str] = mapped_column(String, nullable=False)
    embedding_json: Mapped[str] = mapped_column(Text, nullable=False)
    embedding_model: Mapped[str] = mapped_column(String, nullable=False)
    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "content_type IN ('resource', 'learning_path', 'post')",
            name="ck_content_embeddings_type",
        ),
        UniqueConstraint("content_type", "content_id", name="uq_content_embeddings_type_id"),
        Index("ix_content_embeddings_type_model", "content_type", "embedding_model"),
    )


class ContentAnalysisRecord(Base):
    """Stored output of content analysis, one row per content item."""

    __tablename__ = "content_analysis"

    content_id: Mapped[str] = mapped_column(String, primary_key=True)
    content_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    topics_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    target_audience: Mapped[str] = mapped_column(String, nullable=False, default="general")
    difficulty_level: Mapped[str] = mapped_column(String, nullable=False, default="intermediate")
    key_takeaways_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    embedding_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    embedding_model: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    moderation_flagged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    analyzed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "difficulty_level IN ('beginner', 'intermediate', 'advanced')",
            name="ck_content_analysis_difficulty",
        ),
    )


class ContentAnalysisFailure(Base):
    """Failed analysis attempts for a content item, cleared on success."""

    __tablename__ = "content_analysis_failures"

    content_id: Mapped[str] = mapped_column(String, primary_key=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_failed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class UserActivityRecord(Base):
    """Append-only user activity log."""

    __tablename__ = "user_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    activity_type: Mapped[str] = mapped_column(String, nullable=False)
    content_id: Mapped[str] = mapped_column(String, nullable=False)
    content_type: Mapped[str] = mapped_column(String, nullable=False)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "activity_type IN ('view', 'like', 'comment', 'share', 'bookmark', 'create')",
            name="ck_user_activities_type",
        ),
        Index("ix_user_activities_user_created", "user_id", "created_at"),
    )


class UserInterestsRecord(Base):
    """Latest interest snapshot per user, overwritten on every recompute."""

    __tablename__ = "user_interests"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    primary_interests_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    secondary_interests_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    skills_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    content_preferences_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    learning_goals_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class UserPreferencesAnalysis(Base):
    """Aggregated preference snapshot from the recommendation path."""

    __tablename__ = "user_preferences_analysis"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    category_preferences_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    tag_preferences_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    skill_level_preferences_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    interaction_patterns_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    last_analyzed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AIRecommendation(Base):
    """Recommendation emitted to a user, unique per (user, type, item)."""

    __tablename__ = "ai_recommendations"

    rec_id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    recommendation_type: Mapped[str] = mapped_column(String, nullable=False)
    item_id: Mapped[str] = mapped_column(String, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_clicked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    feedback: Mapped[list["AIFeedback"]] = relationship(
        "AIFeedback", back_populates="recommendation", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "recommendation_type", "item_id", name="uq_ai_recommendations_user_type_item"
        ),
        CheckConstraint("score >= 0 AND score <= 1", name="ck_ai_recommendations_score"),
        Index("ix_ai_recommendations_user_updated", "user_id", "updated_at"),
    )


class AIFeedback(Base):
    """User feedback on a recommendation."""

    __tablename__ = "ai_feedback"

    feedback_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recommendation_id: Mapped[str] = mapped_column(
        String, ForeignKey("ai_recommendations.rec_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    feedback_type: Mapped[str] = mapped_column(String, nullable=False)
    feedback_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    recommendation: Mapped["AIRecommendation"] = relationship(
        "AIRecommendation", back_populates="feedback"
    )

    __table_args__ = (
        CheckConstraint(
            "feedback_type IN ('helpful', 'not_helpful', 'save', 'dismiss')",
            name="ck_ai_feedback_type",
        ),
        Index("ix_ai_feedback_recommendation", "recommendation_id"),
    )
