"""Repository for AI recommendation operations."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import RecommendationCandidate
from learnhub.storage.db import dialect_insert
from learnhub.storage.json_utils import safe_json_dumps
from learnhub.storage.models import AIFeedback, AIRecommendation


class RecsRepo:
    """Repository for ``ai_recommendations``.

    Rows are unique per (user, type, item); emitting the same item again
    refreshes score, reason and ``updated_at`` instead of adding a row.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_recommendation(
        self,
        user_id: str,
        candidate: RecommendationCandidate,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Record a recommendation emitted to a user.

        Args:
            user_id: User ID
            candidate: Ranked candidate (its ``type`` is the recommendation type)
            metadata: Generation metadata (model, engine version, timestamp)

        Returns:
            Recommendation ID (existing one if the row was refreshed)
        """
        now = datetime.now(timezone.utc)
        score = min(1.0, max(0.0, candidate.score))
        values = {
            "score": score,
            "reason": candidate.reason,
            "metadata_json": safe_json_dumps(metadata or {}),
            "updated_at": now,
        }
        insert_stmt = dialect_insert(self.session, AIRecommendation).values(
            rec_id=str(uuid.uuid4()),
            user_id=user_id,
            recommendation_type=candidate.type,
            item_id=candidate.item_id,
            is_clicked=False,
            created_at=now,
            **values,
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["user_id", "recommendation_type", "item_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        await self.session.commit()

        stmt = select(AIRecommendation.rec_id).where(
            AIRecommendation.user_id == user_id,
            AIRecommendation.recommendation_type == candidate.type,
            AIRecommendation.item_id == candidate.item_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_rec(self, rec_id: str) -> AIRecommendation | None:
        stmt = select(AIRecommendation).where(AIRecommendation.rec_id == rec_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_rec(self, user_id: str, rec_id: str) -> AIRecommendation | None:
        """Get a recommendation only if it belongs to the user."""
        stmt = select(AIRecommendation).where(
            AIRecommendation.rec_id == rec_id,
            AIRecommendation.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_clicked(self, rec_id: str) -> None:
        stmt = (
            update(AIRecommendation)
            .where(AIRecommendation.rec_id == rec_id)
            .values(is_clicked=True, updated_at=datetime.now(timezone.utc))
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def count_user_recs(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(AIRecommendation)
            .where(AIRecommendation.user_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def prune_older_than(self, days: int) -> int:
        """Delete unclicked recommendations not refreshed within ``days``.

        Returns:
            Number of recommendations deleted
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        stale = select(AIRecommendation.rec_id).where(
            AIRecommendation.updated_at < cutoff,
            AIRecommendation.is_clicked.is_(False),
        )

        await self.session.execute(
            delete(AIFeedback).where(AIFeedback.recommendation_id.in_(stale))
        )
        result = await self.session.execute(
            delete(AIRecommendation).where(AIRecommendation.rec_id.in_(stale))
        )
        await self.session.commit()
        return result.rowcount or 0
