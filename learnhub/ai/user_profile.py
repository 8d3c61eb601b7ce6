"""User interest profiling from the activity log."""

import json
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import ContentPreferences, UserActivity, UserInterests, UserSegment
from learnhub.core.preferences import summarize_activities
from learnhub.jobs.debounce import InterestUpdateScheduler
from learnhub.llm import LLMClient
from learnhub.llm.parsing import as_string_dict, as_string_list, parse_json_object
from learnhub.logging import get_logger
from learnhub.storage import ActivitiesRepo, InterestsRepo, get_session_factory

logger = get_logger(__name__)

SERVICE_NAME = "UserProfileAnalysisService"

# Activities re-read when a debounced recomputation fires
RECOMPUTE_ACTIVITY_LIMIT = 100
SEGMENT_ACTIVITY_LIMIT = 50

USER_INTEREST_PROMPT = """Based on the user's activities, extract their interests and preferences:

Activities:
{activities}

Extract:
1. Primary interests (top 5)
2. Secondary interests
3. Skill levels in different areas (beginner/intermediate/advanced)
4. Content preferences (type, format, length)
5. Learning goals

Respond with a JSON object using the keys "primaryInterests", "secondaryInterests",
"skills", "contentTypes", "formats", "lengthPreference" and "learningGoals"."""

USER_SEGMENT_PROMPT = """Based on the user's interests and activities, determine their segment:

Interests: {interests}
Recent Activities: {activities}

Identify:
1. User segment (e.g., "Active Learner", "Content Creator", "Community Builder")
2. Key characteristics
3. Recommendations for engagement

Respond with a JSON object using the keys "segment", "characteristics" and
"recommendations"."""

_LENGTH_PREFERENCES = ("short", "medium", "long")


def _length_preference(value: object) -> str:
    if isinstance(value, str) and value.lower() in _LENGTH_PREFERENCES:
        return value.lower()
    return "medium"


class UserProfileAnalysisService:
    """Derives and stores user interests; debounces recomputation on activity."""

    def __init__(
        self,
        llm: LLMClient | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
        update_scheduler: InterestUpdateScheduler | None = None,
    ) -> None:
        self.llm = llm or LLMClient(service_name=SERVICE_NAME)
        self._session_factory = session_factory or get_session_factory()
        self.update_scheduler = update_scheduler or InterestUpdateScheduler(
            self.recompute_user_interests
        )

    async def analyze_user_interests(
        self,
        user_id: str,
        activities: list[UserActivity],
    ) -> UserInterests:
        """Extract interests from activities and overwrite the stored snapshot.

        Raises:
            ModelOutputError: Response was not a JSON object
            AIServiceError: Completion failed after all retries
        """
        context = {"user_id": user_id, "activity_count": len(activities)}
        logger.info("Analyzing user interests", extra={"context": context})

        try:
            prompt = USER_INTEREST_PROMPT.format(activities=summarize_activities(activities))
            response = await self.llm.complete(
                prompt,
                response_format="json",
                temperature=0.5,
            )
            data = parse_json_object(response, "analyzeUserInterests")

            interests = UserInterests(
                primary=as_string_list(data.get("primaryInterests")),
                secondary=as_string_list(data.get("secondaryInterests")),
                skills=as_string_dict(data.get("skills")),
                content_preferences=ContentPreferences(
                    types=as_string_list(data.get("contentTypes")) or ["post", "resource"],
                    formats=as_string_list(data.get("formats")),
                    length_preference=_length_preference(data.get("lengthPreference")),
                ),
                learning_goals=as_string_list(data.get("learningGoals")),
                updated_at=datetime.now(timezone.utc),
            )

            async with self._session_factory() as session:
                await InterestsRepo(session).upsert_interests(user_id, interests)

        except Exception as e:
            logger.error(f"User interest analysis failed: {e}", extra={"context": context})
            raise

        return interests

    async def track_user_activity(self, activity: UserActivity) -> None:
        """Record an activity and push back the user's interest recomputation."""
        async with self._session_factory() as session:
            await ActivitiesRepo(session).add_activity(activity)

        self.update_scheduler.schedule(activity.user_id)

    async def recompute_user_interests(self, user_id: str) -> UserInterests | None:
        """Rerun interest analysis over the most recent activities."""
        activities = await self.get_user_activities(user_id, RECOMPUTE_ACTIVITY_LIMIT)
        if not activities:
            logger.info("No activities to analyze", extra={"context": {"user_id": user_id}})
            return None
        return await self.analyze_user_interests(user_id, activities)

    async def analyze_user_segment(self, user_id: str) -> UserSegment:
        """Classify the user into a free-form segment. Not persisted."""
        interests = await self.get_user_interests(user_id)
        activities = await self.get_user_activities(user_id, SEGMENT_ACTIVITY_LIMIT)

        prompt = USER_SEGMENT_PROMPT.format(
            interests=json.dumps(interests.to_dict() if interests else None, ensure_ascii=False),
            activities=summarize_activities(activities),
        )
        response = await self.llm.complete(
            prompt,
            response_format="json",
            temperature=0.6,
        )
        data = parse_json_object(response, "analyzeUserSegment")

        return UserSegment(
            segment=str(data.get("segment") or "general"),
            characteristics=as_string_list(data.get("characteristics")),
            recommendations=as_string_list(data.get("recommendations")),
        )

    async def get_user_interests(self, user_id: str) -> UserInterests | None:
        async with self._session_factory() as session:
            return await InterestsRepo(session).get_interests(user_id)

    async def get_user_activities(self, user_id: str, limit: int = 100) -> list[UserActivity]:
        async with self._session_factory() as session:
            return await ActivitiesRepo(session).list_recent(user_id, limit)
