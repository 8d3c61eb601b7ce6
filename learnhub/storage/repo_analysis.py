"""Repository for stored content analysis."""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import ContentAnalysis
from learnhub.storage.db import dialect_insert
from learnhub.storage.json_utils import load_list, load_vector, safe_json_dumps
from learnhub.storage.models import ContentAnalysisFailure, ContentAnalysisRecord


def to_analysis(record: ContentAnalysisRecord) -> ContentAnalysis:
    """Domain view of a stored analysis row."""
    return ContentAnalysis(
        topics=[str(t) for t in load_list(record.topics_json)],
        target_audience=record.target_audience,
        difficulty_level=record.difficulty_level,
        key_takeaways=[str(t) for t in load_list(record.key_takeaways_json)],
        summary=record.summary,
        embedding=load_vector(record.embedding_json),
        embedding_model=record.embedding_model,
        moderation_flagged=record.moderation_flagged,
        analyzed_at=record.analyzed_at,
    )


class AnalysisRepo:
    """Repository for content analysis rows, keyed by content ID."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_analysis(
        self,
        content_id: str,
        analysis: ContentAnalysis,
        content_type: str | None = None,
        commit: bool = True,
    ) -> None:
        """Insert or overwrite the analysis for a content item.

        Args:
            content_id: Content ID
            analysis: Analysis result; ``analyzed_at`` defaults to now
            content_type: Content type, stored for filtering
            commit: Commit immediately (False lets callers batch writes)
        """
        values = {
            "content_type": content_type,
            "topics_json": safe_json_dumps(analysis.topics, default="[]"),
            "target_audience": analysis.target_audience,
            "difficulty_level": analysis.difficulty_level,
            "key_takeaways_json": safe_json_dumps(analysis.key_takeaways, default="[]"),
            "summary": analysis.summary,
            "embedding_json": safe_json_dumps(analysis.embedding) if analysis.embedding else None,
            "embedding_model": analysis.embedding_model,
            "moderation_flagged": analysis.moderation_flagged,
            "analyzed_at": analysis.analyzed_at or datetime.now(timezone.utc),
        }
        insert_stmt = dialect_insert(self.session, ContentAnalysisRecord).values(
            content_id=content_id, **values
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["content_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        await self.session.execute(
            delete(ContentAnalysisFailure).where(ContentAnalysisFailure.content_id == content_id)
        )
        if commit:
            await self.session.commit()

    async def get_record(self, content_id: str) -> ContentAnalysisRecord | None:
        stmt = select(ContentAnalysisRecord).where(
            ContentAnalysisRecord.content_id == content_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_analysis(self, content_id: str) -> ContentAnalysis | None:
        record = await self.get_record(content_id)
        return to_analysis(record) if record else None

    async def record_failure(self, content_id: str, error: str | None = None) -> int:
        """Count a failed analysis attempt.

        Returns:
            Attempts recorded so far for this content item
        """
        now = datetime.now(timezone.utc)
        insert_stmt = dialect_insert(self.session, ContentAnalysisFailure).values(
            content_id=content_id,
            attempts=1,
            last_error=error,
            last_failed_at=now,
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["content_id"],
            set_={
                "attempts": ContentAnalysisFailure.attempts + 1,
                "last_error": error,
                "last_failed_at": now,
            },
        )
        await self.session.execute(upsert_stmt)
        await self.session.commit()

        result = await self.session.execute(
            select(ContentAnalysisFailure.attempts).where(
                ContentAnalysisFailure.content_id == content_id
            )
        )
        return result.scalar_one()

    async def get_failure(self, content_id: str) -> ContentAnalysisFailure | None:
        stmt = select(ContentAnalysisFailure).where(
            ContentAnalysisFailure.content_id == content_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
