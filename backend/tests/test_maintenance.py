"""
Maintenance sweep tests.

The Celery tasks only wrap these coroutines in a fresh loop and session.
"""

from datetime import timedelta

from sqlalchemy import select

from parley.core.security import utcnow
from parley.models import InvitationStatus, OrgInvitation, UserSession
from parley.schemas.invitation import OrgInvitationCreateRequest
from parley.services.invitation_service import InvitationService
from parley.workers.maintenance_tasks import expire_stale_invitations, purge_expired_sessions


async def test_purge_expired_sessions(db, sign_in):
    stale = await sign_in()
    fresh = await sign_in()
    session = (
        await db.execute(select(UserSession).where(UserSession.user_id == stale.id))
    ).scalar_one()
    session.expires_at = utcnow() - timedelta(hours=1)
    await db.commit()

    assert await purge_expired_sessions(db) == 1

    remaining = (await db.execute(select(UserSession.user_id))).scalars().all()
    assert remaining == [fresh.id]


async def test_expire_stale_invitations(db, redis, sign_in, create_org):
    owner = await sign_in()
    org = await create_org(owner)
    invitation = await InvitationService(db=db, redis=redis).create_org_invitation(
        owner.token, org.id, OrgInvitationCreateRequest(email="someone@example.com")
    )
    row = await db.get(OrgInvitation, invitation.id)
    row.expires_at = utcnow() - timedelta(days=1)
    await db.commit()

    assert await expire_stale_invitations(db) == 1
    # Nothing left to sweep
    assert await expire_stale_invitations(db) == 0

    await db.refresh(row)
    assert row.status == InvitationStatus.expired
