"""
Membership and permission tests.

Capability matrix on membership rows plus the org/workspace guards.
"""

import pytest

from parley.core.exceptions import NotFound, Unauthorized
from parley.models import MemberStatus, OrgMember, OrgRole, WorkspaceRole
from parley.services.organization_service import OrganizationService
from parley.services.permissions import AccessControl, OrgCapability, member_has_capability


def _member(role: OrgRole, status: MemberStatus = MemberStatus.active, **flags) -> OrgMember:
    return OrgMember(
        role=role,
        status=status,
        can_create_workspaces=flags.get("can_create_workspaces", False),
        can_invite_members=flags.get("can_invite_members", False),
        can_manage_billing=flags.get("can_manage_billing", False),
    )


@pytest.mark.parametrize(
    "role,capability,expected",
    [
        (OrgRole.owner, OrgCapability.is_admin, True),
        (OrgRole.owner, OrgCapability.invite_members, True),
        (OrgRole.owner, OrgCapability.create_workspaces, True),
        (OrgRole.owner, OrgCapability.manage_billing, True),
        (OrgRole.admin, OrgCapability.is_admin, True),
        (OrgRole.admin, OrgCapability.invite_members, True),
        (OrgRole.admin, OrgCapability.create_workspaces, True),
        (OrgRole.admin, OrgCapability.manage_billing, False),
        (OrgRole.member, OrgCapability.is_admin, False),
        (OrgRole.member, OrgCapability.invite_members, False),
        (OrgRole.member, OrgCapability.create_workspaces, False),
        (OrgRole.guest, OrgCapability.invite_members, False),
    ],
)
def test_role_capabilities(role, capability, expected):
    assert member_has_capability(_member(role), capability) is expected


def test_flags_grant_capabilities_to_plain_members():
    member = _member(
        OrgRole.member,
        can_create_workspaces=True,
        can_invite_members=True,
        can_manage_billing=True,
    )
    assert member_has_capability(member, OrgCapability.create_workspaces)
    assert member_has_capability(member, OrgCapability.invite_members)
    assert member_has_capability(member, OrgCapability.manage_billing)
    # Flags never make someone an admin
    assert not member_has_capability(member, OrgCapability.is_admin)


@pytest.mark.parametrize("status", [MemberStatus.suspended, MemberStatus.pending_invitation])
def test_inactive_members_hold_nothing(status):
    member = _member(OrgRole.owner, status=status)
    for capability in OrgCapability:
        assert member_has_capability(member, capability) is False


def test_no_membership_holds_nothing():
    assert member_has_capability(None, OrgCapability.is_admin) is False


async def test_require_org_member(db, sign_in, create_org):
    owner = await sign_in()
    outsider = await sign_in()
    org = await create_org(owner)
    access = AccessControl(db)

    _, member = await access.require_org_member(owner.id, org.id)
    assert member.role == OrgRole.owner

    with pytest.raises(Unauthorized) as exc_info:
        await access.require_org_member(outsider.id, org.id)
    assert exc_info.value.detail["code"] == "NOT_A_MEMBER"


async def test_inactive_org_is_not_found(db, sign_in, create_org):
    owner = await sign_in()
    org = await create_org(owner)
    access = AccessControl(db)
    (await access.get_active_org(org.id)).is_active = False
    await db.flush()

    with pytest.raises(NotFound):
        await access.require_org_member(owner.id, org.id)


async def test_suspended_member_is_rejected(db, sign_in, create_org, add_org_member):
    owner = await sign_in()
    bob = await sign_in()
    org = await create_org(owner)
    await add_org_member(owner, org.id, bob, can_invite_members=True)
    access = AccessControl(db)

    membership = await access.get_org_membership(bob.id, org.id)
    assert await access.has_org_capability(bob.id, org.id, OrgCapability.invite_members)

    membership.status = MemberStatus.suspended
    await db.flush()
    assert not await access.has_org_capability(bob.id, org.id, OrgCapability.invite_members)
    with pytest.raises(Unauthorized):
        await access.require_org_member(bob.id, org.id)


async def test_require_org_capability(db, sign_in, create_org, add_org_member):
    owner = await sign_in()
    bob = await sign_in()
    org = await create_org(owner)
    await add_org_member(owner, org.id, bob)

    with pytest.raises(Unauthorized) as exc_info:
        await AccessControl(db).require_org_capability(bob.id, org.id, OrgCapability.is_admin)
    assert exc_info.value.detail["code"] == "INSUFFICIENT_CAPABILITY"


async def test_workspace_guards(
    db, sign_in, create_org, add_org_member, create_workspace, add_workspace_member
):
    owner = await sign_in()
    bob = await sign_in()
    carol = await sign_in()
    org = await create_org(owner)
    await add_org_member(owner, org.id, bob)
    await add_org_member(owner, org.id, carol)
    workspace = await create_workspace(owner, org.id)
    await add_workspace_member(owner, workspace.id, bob, role=WorkspaceRole.viewer)
    access = AccessControl(db)

    assert await access.is_workspace_admin(owner.id, workspace.id)
    assert await access.is_workspace_member(bob.id, workspace.id)
    assert not await access.is_workspace_admin(bob.id, workspace.id)
    # Org membership alone is not workspace membership
    assert not await access.is_workspace_member(carol.id, workspace.id)

    with pytest.raises(Unauthorized) as exc_info:
        await access.require_workspace_admin(bob.id, workspace.id)
    assert exc_info.value.detail["code"] == "NOT_WORKSPACE_ADMIN"

    with pytest.raises(Unauthorized) as exc_info:
        await access.require_workspace_member(carol.id, workspace.id)
    assert exc_info.value.detail["code"] == "NOT_A_WORKSPACE_MEMBER"


async def test_suspended_org_member_loses_workspace_access(
    db, redis, sign_in, create_org, add_org_member, create_workspace, add_workspace_member
):
    owner = await sign_in()
    bob = await sign_in()
    org = await create_org(owner)
    await add_org_member(owner, org.id, bob)
    workspace = await create_workspace(owner, org.id)
    await add_workspace_member(owner, workspace.id, bob, role=WorkspaceRole.admin)
    access = AccessControl(db)
    assert await access.is_workspace_admin(bob.id, workspace.id)

    await OrganizationService(db=db, redis=redis).set_member_status(
        owner.token, org.id, bob.id, MemberStatus.suspended
    )

    # The workspace row is still there; the org membership no longer backs it
    assert await access.get_workspace_membership(bob.id, workspace.id) is not None
    assert not await access.is_workspace_member(bob.id, workspace.id)
    assert not await access.is_workspace_admin(bob.id, workspace.id)
    with pytest.raises(Unauthorized) as exc_info:
        await access.require_workspace_member(bob.id, workspace.id)
    assert exc_info.value.detail["code"] == "NOT_A_WORKSPACE_MEMBER"
    with pytest.raises(Unauthorized):
        await access.require_workspace_admin(bob.id, workspace.id)
