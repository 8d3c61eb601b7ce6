"""Repository for derived user interest and preference snapshots."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import ContentPreferences, UserInterests
from learnhub.core.preferences import PreferenceProfile
from learnhub.storage.db import dialect_insert
from learnhub.storage.json_utils import load_dict, load_list, safe_json_dumps
from learnhub.storage.models import UserInterestsRecord, UserPreferencesAnalysis


def to_interests(record: UserInterestsRecord) -> UserInterests:
    prefs = load_dict(record.content_preferences_json)
    return UserInterests(
        primary=load_list(record.primary_interests_json),
        secondary=load_list(record.secondary_interests_json),
        skills=load_dict(record.skills_json),
        content_preferences=ContentPreferences(
            types=prefs.get("types") or ["post", "resource"],
            formats=prefs.get("formats") or [],
            length_preference=prefs.get("length_preference") or "medium",
        ),
        learning_goals=load_list(record.learning_goals_json),
        updated_at=record.updated_at,
    )


class InterestsRepo:
    """Repository for ``user_interests`` and ``user_preferences_analysis``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_interests(self, user_id: str, interests: UserInterests) -> None:
        """Overwrite the user's interest snapshot in full."""
        now = interests.updated_at or datetime.now(timezone.utc)
        prefs = interests.content_preferences
        values = {
            "primary_interests_json": safe_json_dumps(interests.primary, default="[]"),
            "secondary_interests_json": safe_json_dumps(interests.secondary, default="[]"),
            "skills_json": safe_json_dumps(interests.skills),
            "content_preferences_json": safe_json_dumps({
                "types": prefs.types,
                "formats": prefs.formats,
                "length_preference": prefs.length_preference,
            }),
            "learning_goals_json": safe_json_dumps(interests.learning_goals, default="[]"),
            "updated_at": now,
        }
        insert_stmt = dialect_insert(self.session, UserInterestsRecord).values(
            user_id=user_id, **values
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        await self.session.commit()

    async def get_interests(self, user_id: str) -> UserInterests | None:
        stmt = select(UserInterestsRecord).where(UserInterestsRecord.user_id == user_id)
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return to_interests(record) if record else None

    async def upsert_preferences_snapshot(
        self,
        user_id: str,
        profile: PreferenceProfile,
    ) -> None:
        """Overwrite the aggregated preference snapshot of a user."""
        values = {
            "category_preferences_json": safe_json_dumps(profile.categories),
            "tag_preferences_json": safe_json_dumps(profile.tags),
            "skill_level_preferences_json": safe_json_dumps(profile.skill_levels),
            "interaction_patterns_json": safe_json_dumps(
                profile.to_dict()["learning_patterns"]
            ),
            "last_analyzed_at": datetime.now(timezone.utc),
        }
        insert_stmt = dialect_insert(self.session, UserPreferencesAnalysis).values(
            user_id=user_id, **values
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["user_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        await self.session.commit()

    async def get_preferences_snapshot(self, user_id: str) -> UserPreferencesAnalysis | None:
        stmt = select(UserPreferencesAnalysis).where(UserPreferencesAnalysis.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
