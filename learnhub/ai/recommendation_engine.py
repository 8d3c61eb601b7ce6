"""Personalised recommendations from aggregated preferences and vector search."""

import asyncio
import json
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.config import config
from learnhub.core.contracts import RecommendationCandidate, RecommendationType
from learnhub.core.preferences import (
    ContentSignal,
    PreferenceProfile,
    aggregate_preferences,
    preferences_to_text,
)
from learnhub.llm import LLMClient, ModelOutputError
from learnhub.llm.parsing import parse_json_object
from learnhub.logging import get_logger
from learnhub.storage import (
    ActivitiesRepo,
    ContentRepo,
    EmbeddingsRepo,
    InterestsRepo,
    RecsRepo,
    get_session_factory,
)
from learnhub.storage.json_utils import load_dict
from learnhub.storage.repo_content import to_signal

logger = get_logger(__name__)

SERVICE_NAME = "AIRecommendationEngine"
ENGINE_VERSION = "2.0"

BEHAVIOR_ACTIVITY_LIMIT = 100

# Score for candidates that carry no similarity (cold start)
DEFAULT_SCORE = 0.5

DEFAULT_REASON = "Recommended based on your interests"
FALLBACK_REASON = "Recommended based on your learning preferences"

REASONS_PROMPT = """Based on the user preferences and recommended content, generate a brief,
personalized reason for each recommendation.

User Preferences:
{preferences}

Recommendations:
{recommendations}

Respond with a JSON object of the form
{{"reasons": [{{"id": "<recommendation id>", "reason": "<one sentence>"}}]}}
with exactly one entry per recommendation, echoing its "id"."""


def _clamp_score(value: float) -> float:
    return min(1.0, max(0.0, value))


class AIRecommendationEngine:
    """Builds recommendation candidates for a user."""

    def __init__(
        self,
        llm: LLMClient | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
    ) -> None:
        self.llm = llm or LLMClient(service_name=SERVICE_NAME)
        self._session_factory = session_factory or get_session_factory()

    async def analyze_user_behavior(self, user_id: str) -> PreferenceProfile:
        """Aggregate recent activity, bookmarks and authored content."""

        async def _activities():
            async with self._session_factory() as session:
                return await ActivitiesRepo(session).list_recent(user_id, BEHAVIOR_ACTIVITY_LIMIT)

        async def _bookmarks() -> list[ContentSignal]:
            async with self._session_factory() as session:
                items = await ContentRepo(session).list_bookmarked(user_id)
                return [to_signal(item) for item in items]

        async def _authored() -> list[ContentSignal]:
            async with self._session_factory() as session:
                items = await ContentRepo(session).list_authored(user_id)
                return [to_signal(item) for item in items]

        activities, bookmarks, authored = await asyncio.gather(
            _activities(), _bookmarks(), _authored()
        )
        return aggregate_preferences(activities, bookmarks, authored)

    async def find_similar_content(
        self,
        content_type: str,
        preferences: PreferenceProfile,
        limit: int = 10,
    ) -> list[RecommendationCandidate]:
        """Content of one type closest to the user's preference sentence.

        Users without any category, tag or skill signal get the most recently
        embedded content of the type instead.
        """
        if limit <= 0:
            return []

        preference_text = preferences_to_text(preferences)

        if not preference_text:
            async with self._session_factory() as session:
                rows = await EmbeddingsRepo(session).list_recent(
                    content_type, self.llm.embedding_model, limit
                )
            logger.info(
                "No preference signal, using recent content",
                extra={"context": {"content_type": content_type, "count": len(rows)}},
            )
            candidates = []
            for row in rows:
                metadata = load_dict(row.metadata_json)
                candidates.append(
                    RecommendationCandidate(
                        item_id=row.content_id,
                        type=row.content_type,
                        score=DEFAULT_SCORE,
                        title=str(metadata.get("title") or ""),
                        description=str(metadata.get("description") or ""),
                        metadata=metadata,
                    )
                )
            return candidates

        embedding = await self.llm.create_embedding(preference_text)
        threshold = config.recs_min_similarity if config.recs_min_similarity > 0 else None

        async with self._session_factory() as session:
            matches = await EmbeddingsRepo(session).search_similar(
                embedding,
                embedding_model=self.llm.embedding_model,
                content_type=content_type,
                limit=limit,
                threshold=threshold,
            )

        return [
            RecommendationCandidate(
                item_id=match.content_id,
                type=match.content_type,
                score=(
                    _clamp_score(match.similarity)
                    if match.similarity is not None
                    else DEFAULT_SCORE
                ),
                title=str(match.metadata.get("title") or ""),
                description=str(match.metadata.get("description") or ""),
                similarity=match.similarity,
                metadata=match.metadata,
            )
            for match in matches
        ]

    async def generate_personalized_recommendations(
        self,
        user_id: str,
        recommendation_type: str,
        limit: int | None = None,
        preferences: PreferenceProfile | None = None,
    ) -> list[RecommendationCandidate]:
        """Ranked candidates for a user, at most ``limit`` of them.

        ``mixed`` searches resources and learning paths and merges both lists
        before truncating.

        Raises:
            ValueError: Unknown recommendation type
        """
        rec_type = RecommendationType(recommendation_type)
        if limit is None:
            limit = config.recs_max_recommendations
        if limit <= 0:
            return []

        if preferences is None:
            preferences = await self.analyze_user_behavior(user_id)

        candidates: list[RecommendationCandidate] = []
        for content_type in rec_type.content_types():
            candidates.extend(await self.find_similar_content(content_type, preferences, limit))

        candidates.sort(key=lambda c: c.score, reverse=True)
        result = candidates[:limit]

        logger.info(
            "Generated recommendations",
            extra={"context": {"user_id": user_id, "type": rec_type.value, "count": len(result)}},
        )
        return result

    async def generate_recommendation_reasons(
        self,
        candidates: list[RecommendationCandidate],
        preferences: PreferenceProfile,
    ) -> list[RecommendationCandidate]:
        """Attach a short justification to each candidate.

        Reasons are matched to candidates by the ID the model echoes back.
        Candidates the model skipped get a generic reason; if the call or
        parsing fails, every candidate gets the fallback reason.
        """
        if not candidates:
            return []

        prompt = REASONS_PROMPT.format(
            preferences=json.dumps(preferences.to_dict(), indent=2, ensure_ascii=False),
            recommendations=json.dumps(
                [
                    {
                        "id": c.item_id,
                        "title": c.title,
                        "description": c.description,
                        "type": c.type,
                    }
                    for c in candidates
                ],
                indent=2,
                ensure_ascii=False,
            ),
        )

        try:
            response = await self.llm.complete(
                prompt,
                response_format="json",
                temperature=0.7,
            )
            data = parse_json_object(response, "generateRecommendationReasons")
            entries = data.get("reasons")
            if not isinstance(entries, list):
                raise ModelOutputError("generateRecommendationReasons", response)

            reasons: dict[str, str] = {}
            for entry in entries:
                if not isinstance(entry, dict):
                    continue
                item_id, reason = entry.get("id"), entry.get("reason")
                if item_id is not None and isinstance(reason, str) and reason.strip():
                    reasons[str(item_id)] = reason.strip()

        except Exception as e:
            logger.warning(
                f"Failed to generate recommendation reasons: {e}",
                extra={"context": {"count": len(candidates)}},
            )
            return [replace(c, reason=FALLBACK_REASON) for c in candidates]

        return [replace(c, reason=reasons.get(c.item_id, DEFAULT_REASON)) for c in candidates]

    async def save_recommendations(
        self,
        user_id: str,
        candidates: list[RecommendationCandidate],
        preferences: PreferenceProfile,
    ) -> list[str]:
        """Upsert emitted recommendations and the preference snapshot.

        Returns:
            Recommendation IDs, in candidate order
        """
        metadata = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "model": self.llm.completion_model,
            "embedding_model": self.llm.embedding_model,
            "engine_version": ENGINE_VERSION,
        }
        async with self._session_factory() as session:
            recs_repo = RecsRepo(session)
            rec_ids = [
                await recs_repo.upsert_recommendation(user_id, candidate, metadata)
                for candidate in candidates
            ]
            await InterestsRepo(session).upsert_preferences_snapshot(user_id, preferences)

        return rec_ids
