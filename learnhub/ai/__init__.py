"""AI services: content analysis, interest profiling and recommendations."""

from learnhub.ai.content_analysis import ContentAnalysisService, ContentRejectedError
from learnhub.ai.recommendation_engine import AIRecommendationEngine
from learnhub.ai.user_profile import UserProfileAnalysisService

__all__ = [
    "AIRecommendationEngine",
    "ContentAnalysisService",
    "ContentRejectedError",
    "UserProfileAnalysisService",
]
