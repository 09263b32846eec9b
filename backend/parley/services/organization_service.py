"""
Organization business logic.

Handles org creation, soft deletion and member management.
All queries scoped by org_id; every operation authenticates first.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.exceptions import (
    Conflict,
    InvariantViolation,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from parley.core.security import is_expired, utcnow
from parley.models.invitation import InvitationStatus, OrgInvitation
from parley.models.member import MemberStatus, OrgMember, OrgRole
from parley.models.organization import Organization, PlanTier, SubscriptionStatus
from parley.models.user import User
from parley.models.workspace import Workspace, WorkspaceMember
from parley.schemas.auth import UserSnapshot
from parley.schemas.invitation import OrgInvitationResponse, OrgInvitationsListResponse
from parley.schemas.organization import (
    MemberAddRequest,
    MemberResponse,
    MemberRoleUpdateRequest,
    MembersListResponse,
    OrganizationCreateRequest,
    OrganizationDetailResponse,
    OrganizationListResponse,
    OrganizationResponse,
    OrganizationUpdateRequest,
)
from parley.services.permissions import AccessControl, OrgCapability
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)

FREE_PLAN_MAX_MEMBERS = 10
TRIAL_DAYS = 30


async def ensure_member_capacity(db: AsyncSession, org: Organization) -> None:
    """Raise Conflict when the org already holds `max_members` active members."""
    if org.max_members is None:
        return
    result = await db.execute(
        select(func.count())
        .select_from(OrgMember)
        .where(OrgMember.org_id == org.id, OrgMember.status == MemberStatus.active)
    )
    if result.scalar_one() >= org.max_members:
        raise Conflict(
            "Organization has reached its member limit", code="MEMBER_LIMIT_REACHED"
        )


def _member_response(member: OrgMember, user: User | None) -> MemberResponse:
    response = MemberResponse.model_validate(member)
    if user is not None:
        response.profile = UserSnapshot.model_validate(user)
    return response


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.sessions = SessionStore(db)
        self.access = AccessControl(db)

    # -----------------------------------------------------------------------
    # Create Organization
    # -----------------------------------------------------------------------

    async def create_organization(
        self, token: str, data: OrganizationCreateRequest
    ) -> OrganizationDetailResponse:
        """
        Create a new organization.

        - Validates slug uniqueness (across active and inactive orgs)
        - Starts a free-plan trial with the default member cap
        - Assigns creator as Owner with every capability
        """
        user = await self.sessions.require(token)

        existing = await self.db.execute(
            select(Organization).where(Organization.slug == data.slug)
        )
        if existing.scalar_one_or_none() is not None:
            raise Conflict("Organization slug is already taken", code="SLUG_TAKEN")

        org = Organization(
            name=data.name,
            slug=data.slug,
            description=data.description,
            email_domain=data.email_domain.lower() if data.email_domain else None,
            allow_public_join=data.allow_public_join,
            plan=PlanTier.free,
            subscription_status=SubscriptionStatus.trial,
            trial_ends_at=utcnow() + timedelta(days=TRIAL_DAYS),
            max_members=FREE_PLAN_MAX_MEMBERS,
            created_by=user.id,
            is_active=True,
        )
        self.db.add(org)
        await self.db.flush()

        member = OrgMember(
            org_id=org.id,
            user_id=user.id,
            role=OrgRole.owner,
            can_create_workspaces=True,
            can_invite_members=True,
            can_manage_billing=True,
            status=MemberStatus.active,
        )
        self.db.add(member)
        await self.db.flush()

        logger.info("Organization created: org_id=%s slug=%s owner=%s", org.id, org.slug, user.id)
        return await self._detail(org, member)

    # -----------------------------------------------------------------------
    # Get / List
    # -----------------------------------------------------------------------

    async def get_organization(self, token: str, org_id: UUID) -> OrganizationDetailResponse:
        """Get organization details. Must be an active member."""
        user = await self.sessions.require(token)
        org, member = await self.access.require_org_member(user.id, org_id)
        return await self._detail(org, member)

    async def list_my_organizations(self, token: str) -> OrganizationListResponse:
        """Active organizations where the caller holds an active membership."""
        user = await self.sessions.require(token)
        result = await self.db.execute(
            select(Organization, OrgMember)
            .join(OrgMember, OrgMember.org_id == Organization.id)
            .where(
                OrgMember.user_id == user.id,
                OrgMember.status == MemberStatus.active,
                Organization.is_active.is_(True),
            )
            .order_by(Organization.name)
        )
        organizations = [await self._detail(org, member) for org, member in result.all()]
        return OrganizationListResponse(organizations=organizations, total=len(organizations))

    async def _detail(self, org: Organization, member: OrgMember) -> OrganizationDetailResponse:
        member_count = await self.db.execute(
            select(func.count())
            .select_from(OrgMember)
            .where(OrgMember.org_id == org.id, OrgMember.status == MemberStatus.active)
        )
        workspace_count = await self.db.execute(
            select(func.count()).select_from(Workspace).where(Workspace.org_id == org.id)
        )
        return OrganizationDetailResponse(
            **OrganizationResponse.model_validate(org).model_dump(),
            member_count=member_count.scalar_one(),
            workspace_count=workspace_count.scalar_one(),
            my_role=member.role,
            can_create_workspaces=member.can_create_workspaces,
            can_invite_members=member.can_invite_members,
            can_manage_billing=member.can_manage_billing,
        )

    # -----------------------------------------------------------------------
    # Update / Delete
    # -----------------------------------------------------------------------

    async def update_organization(
        self, token: str, org_id: UUID, data: OrganizationUpdateRequest
    ) -> OrganizationDetailResponse:
        """Update settings. Requires isAdmin."""
        user = await self.sessions.require(token)
        org, member = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.is_admin
        )

        updates = data.model_dump(exclude_unset=True)
        if "name" in updates and updates["name"] is not None:
            name = updates["name"].strip()
            if not name:
                raise ValidationFailed("Organization name cannot be blank")
            updates["name"] = name
        if updates.get("email_domain"):
            updates["email_domain"] = updates["email_domain"].lower()

        for field, value in updates.items():
            if value is None and field in ("name", "allow_public_join"):
                continue
            setattr(org, field, value)

        await self.db.flush()
        return await self._detail(org, member)

    async def delete_organization(self, token: str, org_id: UUID) -> None:
        """Soft delete: the org becomes invisible to every read. Owner only."""
        user = await self.sessions.require(token)
        org, member = await self.access.require_org_member(user.id, org_id)
        if member.role != OrgRole.owner:
            raise Unauthorized("Only owners can delete the organization", code="OWNER_REQUIRED")

        org.is_active = False
        await self.db.flush()
        logger.info("Organization deactivated: org_id=%s by=%s", org.id, user.id)

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def list_members(self, token: str, org_id: UUID) -> MembersListResponse:
        """List active members with a snapshot of their profile."""
        user = await self.sessions.require(token)
        await self.access.require_org_member(user.id, org_id)

        result = await self.db.execute(
            select(OrgMember, User)
            .join(User, OrgMember.user_id == User.id)
            .where(OrgMember.org_id == org_id, OrgMember.status == MemberStatus.active)
            .order_by(OrgMember.joined_at)
        )
        members = [_member_response(member, member_user) for member, member_user in result.all()]
        return MembersListResponse(members=members, total=len(members))

    async def add_member(
        self, token: str, org_id: UUID, data: MemberAddRequest
    ) -> MemberResponse:
        """
        Add an existing user (looked up by email) directly.

        Requires inviteMembers. Respects the member cap.
        """
        user = await self.sessions.require(token)
        org, _ = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.invite_members
        )

        target_result = await self.db.execute(
            select(User).where(User.email == str(data.email).lower())
        )
        target = target_result.scalar_one_or_none()
        if target is None:
            raise NotFound("User not found", code="USER_NOT_FOUND")

        if await self.access.get_org_membership(target.id, org_id) is not None:
            raise Conflict("User is already a member", code="ALREADY_MEMBER")

        await ensure_member_capacity(self.db, org)

        now = utcnow()
        member = OrgMember(
            org_id=org.id,
            user_id=target.id,
            role=data.role,
            can_create_workspaces=data.can_create_workspaces,
            can_invite_members=data.can_invite_members,
            can_manage_billing=False,
            status=MemberStatus.active,
            invited_by=user.id,
            invite_accepted_at=now,
            joined_at=now,
        )
        self.db.add(member)
        await self.db.flush()

        logger.info("Member added: org_id=%s user_id=%s role=%s", org.id, target.id, data.role.value)
        return _member_response(member, target)

    async def update_member_role(
        self,
        token: str,
        org_id: UUID,
        target_user_id: UUID,
        data: MemberRoleUpdateRequest,
    ) -> MemberResponse:
        """
        Change a member's role and capability flags. Requires isAdmin.

        - Only an owner may grant the owner role
        - Only an owner may change another owner's role
        """
        user = await self.sessions.require(token)
        _, acting_member = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.is_admin
        )

        target = await self.access.get_org_membership(target_user_id, org_id)
        if target is None:
            raise NotFound("Member not found", code="MEMBER_NOT_FOUND")

        caller_is_owner = acting_member.role == OrgRole.owner
        if data.role == OrgRole.owner and not caller_is_owner:
            raise Unauthorized("Only owners can grant ownership", code="OWNER_REQUIRED")
        if target.role == OrgRole.owner and not caller_is_owner:
            raise Unauthorized("Only owners can change an owner's role", code="OWNER_REQUIRED")

        target.role = data.role
        if data.can_create_workspaces is not None:
            target.can_create_workspaces = data.can_create_workspaces
        if data.can_invite_members is not None:
            target.can_invite_members = data.can_invite_members
        if data.can_manage_billing is not None:
            target.can_manage_billing = data.can_manage_billing

        await self.db.flush()
        logger.info(
            "Member role updated: org_id=%s user_id=%s role=%s by=%s",
            org_id, target_user_id, data.role.value, user.id,
        )
        target_user = await self.db.get(User, target_user_id)
        return _member_response(target, target_user)

    async def set_member_status(
        self, token: str, org_id: UUID, target_user_id: UUID, status: MemberStatus
    ) -> MemberResponse:
        """Suspend or reactivate a member. Requires isAdmin; owners are protected."""
        user = await self.sessions.require(token)
        _, acting_member = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.is_admin
        )

        target = await self.access.get_org_membership(target_user_id, org_id)
        if target is None:
            raise NotFound("Member not found", code="MEMBER_NOT_FOUND")
        if target.role == OrgRole.owner and acting_member.role != OrgRole.owner:
            raise Unauthorized("Only owners can change an owner's status", code="OWNER_REQUIRED")
        if target_user_id == user.id:
            raise Unauthorized("You cannot change your own status", code="SELF_STATUS_CHANGE")

        target.status = status
        await self.db.flush()
        logger.info(
            "Member status updated: org_id=%s user_id=%s status=%s",
            org_id, target_user_id, status.value,
        )
        target_user = await self.db.get(User, target_user_id)
        return _member_response(target, target_user)

    async def remove_member(self, token: str, org_id: UUID, target_user_id: UUID) -> None:
        """
        Remove a member from the organization.

        - Members may remove themselves; anyone else needs isAdmin
        - Only an owner may remove another owner
        - The last owner can never be removed
        - Cascades to the user's workspace memberships in this org
        """
        user = await self.sessions.require(token)
        await self.access.get_active_org(org_id)

        target = await self.access.get_org_membership(target_user_id, org_id)
        if target is None:
            raise NotFound("Member not found", code="MEMBER_NOT_FOUND")

        is_self = target_user_id == user.id
        acting_member = target if is_self else await self.access.get_org_membership(user.id, org_id)
        if not is_self:
            if not await self.access.has_org_capability(user.id, org_id, OrgCapability.is_admin):
                raise Unauthorized("Not authorized to remove members", code="NOT_AUTHORIZED")
            if target.role == OrgRole.owner and acting_member.role != OrgRole.owner:
                raise Unauthorized("Only owners can remove another owner", code="OWNER_REQUIRED")

        if target.role == OrgRole.owner:
            owner_count = await self.db.execute(
                select(func.count())
                .select_from(OrgMember)
                .where(OrgMember.org_id == org_id, OrgMember.role == OrgRole.owner)
            )
            if owner_count.scalar_one() <= 1:
                raise InvariantViolation(
                    "Cannot remove the last owner of the organization", code="LAST_OWNER"
                )

        await self.db.execute(
            delete(WorkspaceMember).where(
                WorkspaceMember.org_id == org_id,
                WorkspaceMember.user_id == target_user_id,
            )
        )
        await self.db.delete(target)
        await self.db.flush()
        logger.info("Member removed: org_id=%s user_id=%s by=%s", org_id, target_user_id, user.id)

    # -----------------------------------------------------------------------
    # Invitations (admin view)
    # -----------------------------------------------------------------------

    async def list_invitations(self, token: str, org_id: UUID) -> OrgInvitationsListResponse:
        """Pending, unexpired invitations. Requires inviteMembers."""
        user = await self.sessions.require(token)
        await self.access.require_org_capability(user.id, org_id, OrgCapability.invite_members)

        result = await self.db.execute(
            select(OrgInvitation)
            .where(
                OrgInvitation.org_id == org_id,
                OrgInvitation.status == InvitationStatus.pending,
            )
            .order_by(OrgInvitation.invited_at.desc())
        )
        invitations = [
            OrgInvitationResponse.model_validate(invitation)
            for invitation in result.scalars().all()
            if not is_expired(invitation.expires_at)
        ]
        return OrgInvitationsListResponse(invitations=invitations, total=len(invitations))
