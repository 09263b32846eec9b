"""
Maintenance background tasks.

Hourly hygiene sweeps. Expiry is always checked on read, so these only
keep stale rows from piling up.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from parley.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def _run(sweep: Callable[[AsyncSession], Awaitable[int]]) -> int:
    # Fresh loop per task; forked workers must not reuse the parent's pool.
    from parley.core.database import async_engine

    async_engine.sync_engine.dispose()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_in_session(sweep))
    finally:
        loop.close()


async def _in_session(sweep: Callable[[AsyncSession], Awaitable[int]]) -> int:
    from parley.core.database import AsyncSessionLocal, async_engine

    try:
        async with AsyncSessionLocal() as db:
            count = await sweep(db)
            await db.commit()
            return count
    finally:
        await async_engine.dispose()


async def purge_expired_sessions(db: AsyncSession) -> int:
    from parley.services.session_service import SessionStore

    return await SessionStore(db).sweep_expired()


async def expire_stale_invitations(db: AsyncSession) -> int:
    from parley.services.invitation_service import InvitationService

    return await InvitationService(db=db, redis=None).sweep_expired_invitations()


@celery_app.task(
    name="parley.workers.maintenance_tasks.sweep_expired_sessions",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def sweep_expired_sessions(self) -> dict[str, int]:  # type: ignore[no-untyped-def]
    try:
        deleted = _run(purge_expired_sessions)
    except Exception as exc:
        logger.error("sweep_expired_sessions failed: %s", exc)
        raise self.retry(exc=exc)
    return {"deleted": deleted}


@celery_app.task(
    name="parley.workers.maintenance_tasks.sweep_expired_invitations",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def sweep_expired_invitations(self) -> dict[str, int]:  # type: ignore[no-untyped-def]
    try:
        expired = _run(expire_stale_invitations)
    except Exception as exc:
        logger.error("sweep_expired_invitations failed: %s", exc)
        raise self.retry(exc=exc)
    return {"expired": expired}
