"""
Membership and permission model.

The authorization predicates every other service calls after resolving
the session. Checks always use the caller's own membership rows, never
the target's.
"""

from __future__ import annotations

import enum
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.exceptions import NotFound, Unauthorized
from parley.models.member import MemberStatus, OrgMember, OrgRole
from parley.models.organization import Organization
from parley.models.workspace import Workspace, WorkspaceMember, WorkspaceRole

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({OrgRole.owner, OrgRole.admin})


class OrgCapability(str, enum.Enum):
    create_workspaces = "create_workspaces"
    invite_members = "invite_members"
    manage_billing = "manage_billing"
    is_admin = "is_admin"


def member_has_capability(member: OrgMember | None, capability: OrgCapability) -> bool:
    """
    Pure capability check on a membership row.

    Flags are additive grants on top of the role: owners and admins always
    hold is_admin, invite_members and create_workspaces; manage_billing
    needs the owner role or the explicit flag.
    """
    if member is None or member.status != MemberStatus.active:
        return False

    is_admin = member.role in ADMIN_ROLES
    if capability == OrgCapability.is_admin:
        return is_admin
    if capability == OrgCapability.invite_members:
        return is_admin or member.can_invite_members
    if capability == OrgCapability.create_workspaces:
        return is_admin or member.can_create_workspaces
    if capability == OrgCapability.manage_billing:
        return member.role == OrgRole.owner or member.can_manage_billing
    return False


class AccessControl:
    """Organization and workspace lookups plus the capability predicates."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # -----------------------------------------------------------------------
    # Organizations
    # -----------------------------------------------------------------------

    async def get_active_org(self, org_id: UUID) -> Organization:
        """Load an organization; inactive ones are reported as missing."""
        org = await self.db.get(Organization, org_id)
        if org is None or not org.is_active:
            raise NotFound("Organization not found", code="ORG_NOT_FOUND")
        return org

    async def get_org_membership(self, user_id: UUID, org_id: UUID) -> OrgMember | None:
        result = await self.db.execute(
            select(OrgMember).where(
                OrgMember.org_id == org_id,
                OrgMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def has_org_capability(
        self, user_id: UUID, org_id: UUID, capability: OrgCapability
    ) -> bool:
        member = await self.get_org_membership(user_id, org_id)
        return member_has_capability(member, capability)

    async def require_org_member(self, user_id: UUID, org_id: UUID) -> tuple[Organization, OrgMember]:
        """
        Resolve an active org and the caller's active membership in it.

        Raises NotFound for unknown or inactive orgs, Unauthorized otherwise.
        """
        org = await self.get_active_org(org_id)
        member = await self.get_org_membership(user_id, org_id)
        if member is None or not member.is_active:
            logger.debug("Org access denied: user_id=%s org_id=%s", user_id, org_id)
            raise Unauthorized(
                "You are not a member of this organization", code="NOT_A_MEMBER"
            )
        return org, member

    async def require_org_capability(
        self, user_id: UUID, org_id: UUID, capability: OrgCapability
    ) -> tuple[Organization, OrgMember]:
        org, member = await self.require_org_member(user_id, org_id)
        if not member_has_capability(member, capability):
            logger.debug(
                "Capability denied: user_id=%s org_id=%s capability=%s",
                user_id, org_id, capability.value,
            )
            raise Unauthorized(
                f"Missing capability: {capability.value}", code="INSUFFICIENT_CAPABILITY"
            )
        return org, member

    # -----------------------------------------------------------------------
    # Workspaces
    # -----------------------------------------------------------------------

    async def get_workspace(self, workspace_id: UUID) -> Workspace:
        """Load a workspace whose organization is still active."""
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFound("Workspace not found", code="WORKSPACE_NOT_FOUND")
        org = await self.db.get(Organization, workspace.org_id)
        if org is None or not org.is_active:
            raise NotFound("Workspace not found", code="WORKSPACE_NOT_FOUND")
        return workspace

    async def get_workspace_membership(
        self, user_id: UUID, workspace_id: UUID
    ) -> WorkspaceMember | None:
        result = await self.db.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active_workspace_membership(
        self, user_id: UUID, workspace: Workspace
    ) -> WorkspaceMember | None:
        """Workspace membership only counts while the org membership is active."""
        org_member = await self.get_org_membership(user_id, workspace.org_id)
        if org_member is None or not org_member.is_active:
            return None
        return await self.get_workspace_membership(user_id, workspace.id)

    async def is_workspace_member(self, user_id: UUID, workspace_id: UUID) -> bool:
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            return False
        return await self.get_active_workspace_membership(user_id, workspace) is not None

    async def is_workspace_admin(self, user_id: UUID, workspace_id: UUID) -> bool:
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            return False
        membership = await self.get_active_workspace_membership(user_id, workspace)
        return membership is not None and membership.role == WorkspaceRole.admin

    async def require_workspace_member(
        self, user_id: UUID, workspace_id: UUID
    ) -> tuple[Workspace, WorkspaceMember]:
        """Membership in the workspace and an active org membership grant read and post access."""
        workspace = await self.get_workspace(workspace_id)
        membership = await self.get_active_workspace_membership(user_id, workspace)
        if membership is None:
            logger.debug("Workspace access denied: user_id=%s workspace_id=%s", user_id, workspace_id)
            raise Unauthorized(
                "You are not a member of this workspace", code="NOT_A_WORKSPACE_MEMBER"
            )
        return workspace, membership

    async def require_workspace_admin(
        self, user_id: UUID, workspace_id: UUID
    ) -> tuple[Workspace, WorkspaceMember]:
        workspace, membership = await self.require_workspace_member(user_id, workspace_id)
        if membership.role != WorkspaceRole.admin:
            logger.debug("Workspace admin required: user_id=%s workspace_id=%s", user_id, workspace_id)
            raise Unauthorized(
                "Only workspace admins can perform this action", code="NOT_WORKSPACE_ADMIN"
            )
        return workspace, membership
