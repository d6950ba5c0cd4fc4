"""User and auth session repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.users import User, UserSession
from .base import SqlRepository


class UserRepository(SqlRepository[User]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalars().first()


class SessionRepository(SqlRepository[UserSession]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, UserSession)

    def issue(self, user_id: str, token: str, expires_at: datetime) -> UserSession:
        return self.add(UserSession(user_id=user_id, token=token, expires_at=expires_at))

    async def get_by_token(self, token: str) -> Optional[UserSession]:
        result = await self.session.execute(select(UserSession).where(UserSession.token == token))
        return result.scalars().first()

    async def revoke(self, token: str) -> int:
        result = await self.session.execute(delete(UserSession).where(UserSession.token == token))
        return result.rowcount
