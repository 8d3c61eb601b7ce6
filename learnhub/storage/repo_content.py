"""Repository for community content and bookmarks."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import ContentMetadata
from learnhub.core.preferences import ContentSignal
from learnhub.storage.db import dialect_insert
from learnhub.storage.json_utils import load_list, safe_json_dumps
from learnhub.storage.models import (
    Bookmark,
    ContentAnalysisFailure,
    ContentAnalysisRecord,
    ContentItem,
)


def to_signal(item: ContentItem) -> ContentSignal:
    """Preference-relevant view of a content row."""
    return ContentSignal(
        content_type=item.content_type,
        category=item.category,
        tags=[str(t) for t in load_list(item.tags_json)],
        skill_level=item.skill_level,
    )


def to_metadata(item: ContentItem) -> ContentMetadata:
    """Analysis input built from a content row."""
    return ContentMetadata(
        content_id=item.content_id,
        title=item.title,
        description=item.description or "",
        content=item.body or "",
        author_id=item.author_id,
        type=item.content_type,
        tags=[str(t) for t in load_list(item.tags_json)],
    )


class ContentRepo:
    """Repository for content items and bookmarks."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_content(
        self,
        content_id: str,
        content_type: str,
        title: str,
        author_id: str,
        description: str = "",
        body: str = "",
        category: str | None = None,
        tags: list[str] | None = None,
        skill_level: str | None = None,
        status: str = "published",
    ) -> ContentItem:
        """Insert or update a content item.

        Returns:
            The stored ContentItem
        """
        now = datetime.now(timezone.utc)
        values = {
            "content_type": content_type,
            "title": title,
            "description": description,
            "body": body,
            "author_id": author_id,
            "category": category,
            "tags_json": safe_json_dumps(tags or [], default="[]"),
            "skill_level": skill_level,
            "status": status,
        }
        insert_stmt = dialect_insert(self.session, ContentItem).values(
            content_id=content_id, created_at=now, **values
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["content_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        await self.session.commit()

        stmt = (
            select(ContentItem)
            .where(ContentItem.content_id == content_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_content(self, content_id: str) -> ContentItem | None:
        stmt = select(ContentItem).where(ContentItem.content_id == content_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_ids(
        self,
        content_ids: list[str],
        status: str | None = "published",
    ) -> list[ContentItem]:
        """Fetch content items by ID, optionally restricted to a status."""
        if not content_ids:
            return []

        stmt = select(ContentItem).where(ContentItem.content_id.in_(content_ids))
        if status:
            stmt = stmt.where(ContentItem.status == status)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_authored(self, user_id: str, limit: int = 50) -> list[ContentItem]:
        stmt = (
            select(ContentItem)
            .where(ContentItem.author_id == user_id)
            .order_by(ContentItem.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_bookmark(self, user_id: str, content_id: str) -> bool:
        """Bookmark content for a user.

        Returns:
            True if a new bookmark was created
        """
        insert_stmt = dialect_insert(self.session, Bookmark).values(
            user_id=user_id,
            content_id=content_id,
            created_at=datetime.now(timezone.utc),
        )
        result = await self.session.execute(
            insert_stmt.on_conflict_do_nothing(index_elements=["user_id", "content_id"])
        )
        await self.session.commit()
        return result.rowcount > 0

    async def list_bookmarked(self, user_id: str, limit: int = 100) -> list[ContentItem]:
        """Content items bookmarked by a user, newest bookmark first."""
        stmt = (
            select(ContentItem)
            .join(Bookmark, Bookmark.content_id == ContentItem.content_id)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_unanalyzed(
        self,
        limit: int = 50,
        max_attempts: int = 3,
        retry_after: timedelta = timedelta(hours=1),
    ) -> list[ContentItem]:
        """Published content with no stored analysis, oldest first.

        Items that failed analysis are skipped until ``retry_after`` has
        passed since their last failure, and for good once they have
        failed ``max_attempts`` times.
        """
        cutoff = datetime.now(timezone.utc) - retry_after
        stmt = (
            select(ContentItem)
            .outerjoin(
                ContentAnalysisRecord,
                ContentAnalysisRecord.content_id == ContentItem.content_id,
            )
            .outerjoin(
                ContentAnalysisFailure,
                ContentAnalysisFailure.content_id == ContentItem.content_id,
            )
            .where(
                ContentAnalysisRecord.content_id.is_(None),
                ContentItem.status == "published",
                or_(
                    ContentAnalysisFailure.content_id.is_(None),
                    and_(
                        ContentAnalysisFailure.attempts < max_attempts,
                        ContentAnalysisFailure.last_failed_at < cutoff,
                    ),
                ),
            )
            .order_by(ContentItem.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_content(self, content_type: str | None = None) -> int:
        stmt = select(func.count()).select_from(ContentItem)
        if content_type:
            stmt = stmt.where(ContentItem.content_type == content_type)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
