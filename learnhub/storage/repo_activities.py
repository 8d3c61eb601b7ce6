"""Repository for the user activity log."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import UserActivity
from learnhub.storage.json_utils import load_dict, safe_json_dumps
from learnhub.storage.models import UserActivityRecord


def to_activity(record: UserActivityRecord) -> UserActivity:
    return UserActivity(
        user_id=record.user_id,
        type=record.activity_type,
        content_id=record.content_id,
        content_type=record.content_type,
        timestamp=record.created_at,
        duration=record.duration,
        metadata=load_dict(record.metadata_json),
    )


class ActivitiesRepo:
    """Append-only access to ``user_activities``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_activity(self, activity: UserActivity) -> UserActivityRecord:
        """Append one activity row.

        Args:
            activity: Activity to record; its timestamp becomes ``created_at``

        Returns:
            Created row
        """
        record = UserActivityRecord(
            user_id=activity.user_id,
            activity_type=activity.type,
            content_id=activity.content_id,
            content_type=activity.content_type,
            duration=activity.duration,
            metadata_json=safe_json_dumps(activity.metadata or {}),
            created_at=activity.timestamp,
        )
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def list_recent(self, user_id: str, limit: int = 100) -> list[UserActivity]:
        """Most recent activities of a user, newest first."""
        stmt = (
            select(UserActivityRecord)
            .where(UserActivityRecord.user_id == user_id)
            .order_by(UserActivityRecord.created_at.desc(), UserActivityRecord.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [to_activity(r) for r in result.scalars().all()]

    async def count_activities(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(UserActivityRecord)
            .where(UserActivityRecord.user_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
