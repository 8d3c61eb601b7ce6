"""Storage module for database operations."""

from learnhub.storage.db import (
    Base,
    close_engine,
    create_all_tables,
    get_engine,
    get_session_factory,
)
from learnhub.storage.json_utils import safe_json_dumps, safe_json_loads
from learnhub.storage.models import (
    AIFeedback,
    AIRecommendation,
    AuthSession,
    Bookmark,
    ContentAnalysisFailure,
    ContentAnalysisRecord,
    ContentEmbedding,
    ContentItem,
    User,
    UserActivityRecord,
    UserInterestsRecord,
    UserPreferencesAnalysis,
)
from learnhub.storage.repo_activities import ActivitiesRepo
from learnhub.storage.repo_analysis import AnalysisRepo
from learnhub.storage.repo_content import ContentRepo
from learnhub.storage.repo_embeddings import EmbeddingsRepo
from learnhub.storage.repo_feedback import FeedbackRepo
from learnhub.storage.repo_interests import InterestsRepo
from learnhub.storage.repo_recs import RecsRepo
from learnhub.storage.repo_users import UsersRepo

__all__ = [
    # Database
    "Base",
    "get_engine",
    "get_session_factory",
    "create_all_tables",
    "close_engine",
    # JSON utilities
    "safe_json_dumps",
    "safe_json_loads",
    # Models
    "User",
    "AuthSession",
    "ContentItem",
    "Bookmark",
    "ContentEmbedding",
    "ContentAnalysisRecord",
    "ContentAnalysisFailure",
    "UserActivityRecord",
    "UserInterestsRecord",
    "UserPreferencesAnalysis",
    "AIRecommendation",
    "AIFeedback",
    # Repositories
    "UsersRepo",
    "ContentRepo",
    "EmbeddingsRepo",
    "AnalysisRepo",
    "ActivitiesRepo",
    "InterestsRepo",
    "RecsRepo",
    "FeedbackRepo",
]
