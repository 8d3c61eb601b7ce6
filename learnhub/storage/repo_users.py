"""Repository for users and their auth sessions."""

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.storage.models import AuthSession, User


class UsersRepo:
    """Repository for user and session operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_or_create_user(self, user_id: str, username: str | None = None) -> User:
        """Get existing user or create a new one.

        Args:
            user_id: User ID
            username: Optional display name for new users

        Returns:
            User instance (new or existing)
        """
        user = await self.get_user(user_id)
        if user is not None:
            return user

        now = datetime.now(timezone.utc)
        user = User(
            user_id=user_id,
            username=username,
            created_at=now,
            last_seen_at=now,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def get_user(self, user_id: str) -> User | None:
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_session(self, user_id: str, ttl_hours: int | None = 24 * 7) -> str:
        """Issue a bearer token for a user.

        Args:
            user_id: User ID (created if missing)
            ttl_hours: Token lifetime; ``None`` never expires

        Returns:
            The new token
        """
        await self.get_or_create_user(user_id)

        now = datetime.now(timezone.utc)
        token = secrets.token_urlsafe(32)
        self.session.add(
            AuthSession(
                token=token,
                user_id=user_id,
                created_at=now,
                expires_at=now + timedelta(hours=ttl_hours) if ttl_hours else None,
            )
        )
        await self.session.commit()
        return token

    async def get_user_id_for_token(self, token: str) -> str | None:
        """Resolve a bearer token to a user ID, ignoring expired sessions."""
        stmt = select(AuthSession).where(AuthSession.token == token)
        result = await self.session.execute(stmt)
        auth_session = result.scalar_one_or_none()
        if auth_session is None:
            return None

        if auth_session.expires_at is not None:
            expires_at = auth_session.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            if expires_at <= datetime.now(timezone.utc):
                return None

        return auth_session.user_id
