"""
Invitation tests.

Organization invitations (token + email bound, lazily expiring) and
workspace invitations (user-id bound).
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from parley.core.exceptions import (
    Conflict,
    InvitationExpired,
    InvitationNotPending,
    Unauthorized,
    ValidationFailed,
)
from parley.core.security import utcnow
from parley.models import (
    InvitationStatus,
    OrgInvitation,
    OrgRole,
    WorkspaceInvitation,
    WorkspaceInvitationStatus,
    WorkspaceRole,
    WorkspaceType,
)
from parley.schemas.invitation import (
    OrgInvitationCreateRequest,
    WorkspaceInvitationCreateRequest,
)
from parley.services.invitation_service import InvitationService
from parley.services.organization_service import OrganizationService
from parley.services.permissions import AccessControl
from parley.services.workspace_service import WorkspaceService


@pytest.fixture
def service(db, redis) -> InvitationService:
    return InvitationService(db=db, redis=redis)


@pytest.fixture
async def org_setup(sign_in, create_org):
    owner = await sign_in(first_name="Olivia", last_name="Owner")
    org = await create_org(owner, name="Acme")
    return owner, org


async def _invite(service, inviter, org_id, email, **fields):
    return await service.create_org_invitation(
        inviter.token, org_id, OrgInvitationCreateRequest(email=email, **fields)
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def test_create_queues_email(service, org_setup, sent_emails):
    owner, org = org_setup

    invitation = await _invite(service, owner, org.id, "New.Person@Example.com", personal_message="Hi")

    assert invitation.email == "new.person@example.com"
    assert invitation.status == InvitationStatus.pending
    assert len(invitation.token) >= 32
    assert len(sent_emails) == 1
    assert sent_emails[0]["to_email"] == "new.person@example.com"
    assert sent_emails[0]["org_name"] == "Acme"
    assert sent_emails[0]["inviter_name"] == "Olivia Owner"
    assert sent_emails[0]["invitation_token"] == invitation.token


async def test_one_pending_invitation_per_email(service, org_setup):
    owner, org = org_setup
    await _invite(service, owner, org.id, "dup@example.com")

    with pytest.raises(Conflict) as exc_info:
        await _invite(service, owner, org.id, "DUP@example.com")
    assert exc_info.value.detail["code"] == "INVITE_EXISTS"


async def test_reinvite_after_revoke(service, org_setup):
    owner, org = org_setup
    first = await _invite(service, owner, org.id, "again@example.com")

    revoked = await service.revoke_org_invitation(owner.token, first.id)
    assert revoked.status == InvitationStatus.revoked

    second = await _invite(service, owner, org.id, "again@example.com")
    assert second.id != first.id


async def test_cannot_invite_existing_member(service, org_setup, sign_in, add_org_member):
    owner, org = org_setup
    bob = await sign_in(email="bob@example.com")
    await add_org_member(owner, org.id, bob)

    with pytest.raises(Conflict) as exc_info:
        await _invite(service, owner, org.id, "bob@example.com")
    assert exc_info.value.detail["code"] == "ALREADY_MEMBER"


async def test_inviting_requires_capability(service, org_setup, sign_in, add_org_member):
    owner, org = org_setup
    bob = await sign_in()
    carol = await sign_in()
    await add_org_member(owner, org.id, bob)
    await add_org_member(owner, org.id, carol, can_invite_members=True)

    with pytest.raises(Unauthorized):
        await _invite(service, bob, org.id, "x@example.com")

    # Invite flag is enough for members, but not for admin invitations
    await _invite(service, carol, org.id, "y@example.com")
    with pytest.raises(Unauthorized):
        await _invite(service, carol, org.id, "z@example.com", role=OrgRole.admin)


# ---------------------------------------------------------------------------
# Accept / Decline
# ---------------------------------------------------------------------------

async def test_accept_creates_membership_and_joins_public_workspaces(
    service, db, org_setup, sign_in, create_workspace
):
    owner, org = org_setup
    public = await create_workspace(owner, org.id, name="general")
    private = await create_workspace(owner, org.id, name="secret", type=WorkspaceType.private)
    invitation = await _invite(
        service, owner, org.id, "dana@example.com", role=OrgRole.admin, can_create_workspaces=True
    )
    dana = await sign_in(email="dana@example.com")

    joined = await service.accept_org_invitation(dana.token, invitation.token)

    assert joined.id == org.id
    access = AccessControl(db)
    membership = await access.get_org_membership(dana.id, org.id)
    assert membership.role == OrgRole.admin
    assert membership.can_create_workspaces is True
    assert await access.is_workspace_member(dana.id, public.id)
    assert not await access.is_workspace_member(dana.id, private.id)

    row = await db.get(OrgInvitation, invitation.id)
    assert row.status == InvitationStatus.accepted
    assert row.accepted_by == dana.id

    with pytest.raises(InvitationNotPending):
        await service.accept_org_invitation(dana.token, invitation.token)


async def test_accept_requires_matching_email(service, org_setup, sign_in):
    owner, org = org_setup
    invitation = await _invite(service, owner, org.id, "erin@example.com")
    mallory = await sign_in(email="mallory@example.com")

    with pytest.raises(Unauthorized) as exc_info:
        await service.accept_org_invitation(mallory.token, invitation.token)
    assert exc_info.value.detail["code"] == "EMAIL_MISMATCH"

    with pytest.raises(Unauthorized):
        await service.decline_org_invitation(mallory.token, invitation.token)


async def test_expired_invitation_is_flipped_on_access(service, db, org_setup, sign_in):
    owner, org = org_setup
    invitation = await _invite(service, owner, org.id, "late@example.com")
    late = await sign_in(email="late@example.com")
    row = await db.get(OrgInvitation, invitation.id)
    row.expires_at = utcnow() - timedelta(minutes=1)
    await db.commit()

    with pytest.raises(InvitationExpired):
        await service.accept_org_invitation(late.token, invitation.token)

    await db.refresh(row)
    assert row.status == InvitationStatus.expired
    # A second attempt sees the persisted status
    with pytest.raises(InvitationExpired):
        await service.decline_org_invitation(late.token, invitation.token)

    # And a fresh invitation may now be sent
    await _invite(service, owner, org.id, "late@example.com")


async def test_already_member_reconciles_invitation(
    service, db, org_setup, sign_in, add_org_member
):
    owner, org = org_setup
    invitation = await _invite(service, owner, org.id, "frank@example.com")
    frank = await sign_in(email="frank@example.com")
    await add_org_member(owner, org.id, frank)

    with pytest.raises(Conflict):
        await service.accept_org_invitation(frank.token, invitation.token)

    row = await db.get(OrgInvitation, invitation.id)
    await db.refresh(row)
    assert row.status == InvitationStatus.accepted


async def test_decline_then_reinvite(service, org_setup, sign_in):
    owner, org = org_setup
    invitation = await _invite(service, owner, org.id, "gina@example.com")
    gina = await sign_in(email="gina@example.com")

    declined = await service.decline_org_invitation(gina.token, invitation.token)
    assert declined.status == InvitationStatus.declined
    assert declined.declined_at is not None

    await _invite(service, owner, org.id, "gina@example.com")


async def test_preview_and_list_mine(service, org_setup, sign_in):
    owner, org = org_setup
    invitation = await _invite(service, owner, org.id, "hal@example.com", personal_message="Join us")
    hal = await sign_in(email="hal@example.com")

    preview = await service.get_invitation_preview(hal.token, invitation.token)
    assert preview.org_name == "Acme"
    assert preview.inviter_name == "Olivia Owner"
    assert preview.is_expired is False

    mine = await service.list_my_invitations(hal.token)
    assert [p.id for p in mine] == [invitation.id]


async def test_admin_listing_hides_stale_invitations(service, db, org_setup):
    owner, org = org_setup
    fresh = await _invite(service, owner, org.id, "fresh@example.com")
    stale = await _invite(service, owner, org.id, "stale@example.com")
    (await db.get(OrgInvitation, stale.id)).expires_at = utcnow() - timedelta(days=1)
    await db.flush()

    listing = await OrganizationService(db=db, redis=None).list_invitations(owner.token, org.id)
    assert [i.id for i in listing.invitations] == [fresh.id]


async def test_sweep_expires_stale_invitations(service, db, org_setup):
    owner, org = org_setup
    stale = await _invite(service, owner, org.id, "old@example.com")
    await _invite(service, owner, org.id, "new@example.com")
    (await db.get(OrgInvitation, stale.id)).expires_at = utcnow() - timedelta(days=1)
    await db.commit()

    assert await service.sweep_expired_invitations() == 1

    statuses = dict(
        (await db.execute(select(OrgInvitation.email, OrgInvitation.status))).all()
    )
    assert statuses["old@example.com"] == InvitationStatus.expired
    assert statuses["new@example.com"] == InvitationStatus.pending


# ---------------------------------------------------------------------------
# Workspace Invitations
# ---------------------------------------------------------------------------

async def test_workspace_invitation_flow(
    service, db, redis, org_setup, sign_in, add_org_member, create_workspace
):
    owner, org = org_setup
    ivy = await sign_in()
    await add_org_member(owner, org.id, ivy)
    workspace = await create_workspace(owner, org.id, type=WorkspaceType.private)

    invitation = await service.create_workspace_invitation(
        owner.token,
        workspace.id,
        WorkspaceInvitationCreateRequest(user_id=ivy.id, role=WorkspaceRole.viewer),
    )
    with pytest.raises(Conflict):
        await service.create_workspace_invitation(
            owner.token, workspace.id, WorkspaceInvitationCreateRequest(user_id=ivy.id)
        )

    mine = await service.list_my_workspace_invitations(ivy.token)
    assert [i.id for i in mine.invitations] == [invitation.id]

    accepted = await service.accept_workspace_invitation(ivy.token, invitation.id)
    assert accepted.status == WorkspaceInvitationStatus.accepted

    members = await WorkspaceService(db=db, redis=redis).list_members(ivy.token, workspace.id)
    roles = {m.user_id: m.role for m in members.members}
    assert roles[ivy.id] == WorkspaceRole.viewer


async def test_workspace_invitation_needs_org_membership(
    service, org_setup, sign_in, create_workspace
):
    owner, org = org_setup
    outsider = await sign_in()
    workspace = await create_workspace(owner, org.id)

    with pytest.raises(ValidationFailed):
        await service.create_workspace_invitation(
            owner.token, workspace.id, WorkspaceInvitationCreateRequest(user_id=outsider.id)
        )


async def test_workspace_invitation_is_bound_to_invitee(
    service, db, org_setup, sign_in, add_org_member, create_workspace
):
    owner, org = org_setup
    jack = await sign_in()
    kim = await sign_in()
    await add_org_member(owner, org.id, jack)
    await add_org_member(owner, org.id, kim)
    workspace = await create_workspace(owner, org.id)
    invitation = await service.create_workspace_invitation(
        owner.token, workspace.id, WorkspaceInvitationCreateRequest(user_id=jack.id)
    )

    with pytest.raises(Unauthorized):
        await service.accept_workspace_invitation(kim.token, invitation.id)

    declined = await service.decline_workspace_invitation(jack.token, invitation.id)
    assert declined.status == WorkspaceInvitationStatus.declined
    with pytest.raises(InvitationNotPending):
        await service.accept_workspace_invitation(jack.token, invitation.id)


async def test_revoke_workspace_invitation_deletes_row(
    service, db, org_setup, sign_in, add_org_member, create_workspace
):
    owner, org = org_setup
    lee = await sign_in()
    await add_org_member(owner, org.id, lee)
    workspace = await create_workspace(owner, org.id)
    invitation = await service.create_workspace_invitation(
        owner.token, workspace.id, WorkspaceInvitationCreateRequest(user_id=lee.id)
    )

    with pytest.raises(Unauthorized):
        await service.revoke_workspace_invitation(lee.token, invitation.id)

    await service.revoke_workspace_invitation(owner.token, invitation.id)
    assert await db.get(WorkspaceInvitation, invitation.id) is None
