"""
Session store.

Opaque bearer tokens persisted in the `sessions` table. One live session
per user: issuing a new token purges every older one. Expiry is checked
lazily on every resolve; `sweep_expired` is optional hygiene.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.exceptions import Unauthenticated
from parley.core.security import create_session_token, is_expired, utcnow
from parley.models.user import User, UserSession, UserStatus

logger = logging.getLogger(__name__)


class SessionStore:
    """Issues, resolves and revokes session tokens."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Issue
    # -----------------------------------------------------------------------

    async def issue(self, user_id: UUID) -> UserSession:
        """Purge the user's existing sessions and persist a fresh one."""
        await self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))

        session = UserSession(
            user_id=user_id,
            token=create_session_token(),
            expires_at=utcnow() + timedelta(days=settings.SESSION_TTL_DAYS),
        )
        self.db.add(session)
        await self.db.flush()

        logger.info("Session issued: user_id=%s", user_id)
        return session

    # -----------------------------------------------------------------------
    # Resolve
    # -----------------------------------------------------------------------

    async def resolve(self, token: str | None) -> User | None:
        """
        Return the user behind `token`, or None.

        Never raises: empty, unknown and expired tokens all resolve to None.
        An expired row is deleted on sight.
        """
        if not token:
            return None

        result = await self.db.execute(
            select(UserSession).where(UserSession.token == token)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return None

        if is_expired(session.expires_at):
            await self.db.delete(session)
            await self.db.commit()
            return None

        return await self.db.get(User, session.user_id)

    async def require(self, token: str | None) -> User:
        """Resolve `token` or raise Unauthenticated."""
        user = await self.resolve(token)
        if user is None:
            raise Unauthenticated()
        return user

    # -----------------------------------------------------------------------
    # Revoke
    # -----------------------------------------------------------------------

    async def revoke(self, token: str | None) -> None:
        """Delete the session and mark its user offline. No-op for unknown tokens."""
        if not token:
            return

        result = await self.db.execute(
            select(UserSession).where(UserSession.token == token)
        )
        session = result.scalar_one_or_none()
        if session is None:
            return

        user = await self.db.get(User, session.user_id)
        if user is not None:
            user.status = UserStatus.offline

        await self.db.delete(session)
        await self.db.flush()
        logger.info("Session revoked: user_id=%s", session.user_id)

    # -----------------------------------------------------------------------
    # Sweep
    # -----------------------------------------------------------------------

    async def sweep_expired(self) -> int:
        """Delete every session whose expiry has passed. Returns the number removed."""
        result = await self.db.execute(
            delete(UserSession)
            .where(UserSession.expires_at < utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        removed = result.rowcount or 0
        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed
