"""Core module containing domain types, similarity scoring and preference aggregation."""

from learnhub.core.contracts import (
    ActivityType,
    ContentAnalysis,
    ContentMetadata,
    ContentPreferences,
    ContentType,
    DifficultyLevel,
    FeedbackType,
    RecommendationCandidate,
    RecommendationType,
    SimilarContent,
    UserActivity,
    UserInterests,
    UserSegment,
)
from learnhub.core.preferences import (
    ContentSignal,
    LearningPatterns,
    PreferenceProfile,
    aggregate_preferences,
    preferences_to_text,
    summarize_activities,
)
from learnhub.core.similarity import (
    EmbeddingModelMismatchError,
    VectorDimensionError,
    cosine_similarity,
    ensure_same_model,
    rank_by_similarity,
)

__all__ = [
    # Contracts
    "ActivityType",
    "ContentAnalysis",
    "ContentMetadata",
    "ContentPreferences",
    "ContentType",
    "DifficultyLevel",
    "FeedbackType",
    "RecommendationCandidate",
    "RecommendationType",
    "SimilarContent",
    "UserActivity",
    "UserInterests",
    "UserSegment",
    # Preferences
    "ContentSignal",
    "LearningPatterns",
    "PreferenceProfile",
    "aggregate_preferences",
    "preferences_to_text",
    "summarize_activities",
    # Similarity
    "EmbeddingModelMismatchError",
    "VectorDimensionError",
    "cosine_similarity",
    "ensure_same_model",
    "rank_by_similarity",
]
