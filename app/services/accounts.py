"""User registration and session handling."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from werkzeug.security import check_password_hash, generate_password_hash

from ..config import Settings
from ..db_models import User, UserSession
from ..errors import Conflict, Unauthenticated
from ..models import UserPublic

logger = logging.getLogger(__name__)


class AccountService:
    """Creates users and issues opaque, durable session tokens."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._settings = settings
        self._session_factory = session_factory

    async def register(self, username: str, email: str, password: str) -> UserPublic:
        async with self._session_factory() as session:
            existing = await session.execute(
                select(User.username, User.email).where(
                    or_(User.username == username, User.email == email)
                )
            )
            for taken_username, taken_email in existing.all():
                if taken_username == username:
                    raise Conflict("Username already exists")
                if taken_email == email:
                    raise Conflict("Email already registered")

            user = User(
                username=username,
                email=email,
                password_hash=generate_password_hash(password),
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise Conflict("Username or email already registered") from exc

            logger.info("Registered user %s (%s)", user.id, username)
            return UserPublic.model_validate(user)

    async def login(self, username: str, password: str) -> tuple[UserPublic, str]:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            user = result.scalar_one_or_none()
            if user is None or not check_password_hash(user.password_hash, password):
                raise Unauthenticated("Invalid username or password")
            public = UserPublic.model_validate(user)

        token = await self.create_session(public.id)
        return public, token

    async def create_session(self, user_id: int) -> str:
        now = datetime.utcnow()
        token = secrets.token_urlsafe(32)
        async with self._session_factory() as session:
            session.add(
                UserSession(
                    token=token,
                    user_id=user_id,
                    created_at=now,
                    expires_at=now + timedelta(seconds=self._settings.session_ttl_seconds),
                )
            )
            await session.commit()
        return token

    async def authenticate(self, token: str | None) -> UserPublic:
        """Return the user owning ``token`` or raise ``Unauthenticated``."""

        if not token:
            raise Unauthenticated("Authentication required")
        async with self._session_factory() as session:
            record = await session.get(UserSession, token)
            if record is None:
                raise Unauthenticated("Authentication required")
            if record.expires_at <= datetime.utcnow():
                await session.delete(record)
                await session.commit()
                raise Unauthenticated("Session expired")
            user = await session.get(User, record.user_id)
            if user is None:
                raise Unauthenticated("Authentication required")
            return UserPublic.model_validate(user)

    async def logout(self, token: str | None) -> None:
        if not token:
            return
        async with self._session_factory() as session:
            await session.execute(delete(UserSession).where(UserSession.token == token))
            await session.commit()
