"""Repository for recommendation feedback."""

from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.storage.models import AIFeedback


class FeedbackRepo:
    """Repository for user feedback on recommendations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_feedback(
        self,
        user_id: str,
        recommendation_id: str,
        feedback_type: str,
        feedback_text: str | None = None,
    ) -> AIFeedback:
        """Add feedback for a recommendation.

        Args:
            user_id: User ID
            recommendation_id: Recommendation ID
            feedback_type: helpful, not_helpful, save or dismiss
            feedback_text: Optional free text

        Returns:
            Created AIFeedback instance
        """
        feedback = AIFeedback(
            recommendation_id=recommendation_id,
            user_id=user_id,
            feedback_type=feedback_type,
            feedback_text=feedback_text,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(feedback)
        await self.session.commit()
        await self.session.refresh(feedback)
        return feedback

    async def get_feedback_for_rec(self, recommendation_id: str) -> list[AIFeedback]:
        stmt = (
            select(AIFeedback)
            .where(AIFeedback.recommendation_id == recommendation_id)
            .order_by(AIFeedback.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_type_stats(self, recommendation_id: str) -> dict[str, int]:
        """Feedback counts by type for a recommendation."""
        stmt = (
            select(AIFeedback.feedback_type, func.count().label("count"))
            .where(AIFeedback.recommendation_id == recommendation_id)
            .group_by(AIFeedback.feedback_type)
        )
        result = await self.session.execute(stmt)
        return {row.feedback_type: row.count for row in result.all()}
