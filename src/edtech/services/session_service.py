"""Session store — persistence for refresh sessions.

Learn: A session row is {user_id, refresh_token, expires_at}. The store
never trusts presence alone: get_valid() filters on expires_at > now in
the query itself, so an expired row is indistinguishable from a missing
one. Nothing deletes expired rows eagerly.

Concurrency: two refreshes racing on the same row both pass get_valid();
rotate() is a plain UPDATE by id, so the last writer wins and the other
caller's new token is dead on arrival. Clients recover by logging in again.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edtech.db.models import Session, User
from edtech.errors import DuplicateToken, SessionNotFound

logger = structlog.get_logger()


class SessionStore:
    """CRUD for refresh sessions. Every write commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self, user_id: uuid.UUID, refresh_token: str, expires_at: datetime
    ) -> Session:
        """Persist a new session.

        Raises DuplicateToken if the refresh token is already taken.
        """
        session = Session(
            user_id=user_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError:
            # refresh_token is the only unique column on sessions
            await self.db.rollback()
            raise DuplicateToken("refresh token already in use")
        return session

    async def get_valid(
        self, refresh_token: str, now: Optional[datetime] = None
    ) -> tuple[Session, int]:
        """Return the live session for a token and its owner's role id.

        Raises SessionNotFound if no row matches or the row has expired.
        """
        now = now or datetime.now(timezone.utc)
        q = (
            select(Session, User.role_id)
            .join(User, User.id == Session.user_id)
            .where(Session.refresh_token == refresh_token)
            .where(Session.expires_at > now)
        )
        result = await self.db.execute(q)
        row = result.first()
        if row is None:
            raise SessionNotFound("no live session for token")
        session, role_id = row
        return session, role_id

    async def rotate(
        self, session_id: int, refresh_token: str, expires_at: datetime
    ) -> None:
        """Replace a session's refresh token and expiry.

        Raises DuplicateToken on a token collision and SessionNotFound if
        the row disappeared (e.g. a concurrent logout).
        """
        stmt = (
            update(Session)
            .where(Session.id == session_id)
            .values(refresh_token=refresh_token, expires_at=expires_at)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateToken("refresh token already in use")
        if result.rowcount == 0:
            raise SessionNotFound(f"session {session_id} no longer exists")

    async def delete(self, refresh_token: str) -> int:
        """Delete the session for a token. Idempotent."""
        result = await self.db.execute(
            delete(Session).where(Session.refresh_token == refresh_token)
        )
        await self.db.commit()
        return result.rowcount

    async def delete_for_user(self, user_id: uuid.UUID) -> int:
        """Delete every session owned by a user."""
        result = await self.db.execute(
            delete(Session).where(Session.user_id == user_id)
        )
        await self.db.commit()
        if result.rowcount:
            logger.info(
                "sessions.revoked", user_id=str(user_id), count=result.rowcount
            )
        return result.rowcount
