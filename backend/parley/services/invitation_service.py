"""
Invitation business logic.

Organization invitations are token-based and bound to an e-mail address;
workspace invitations target an existing organization member by user id.

State machine (both kinds):
    pending -> accepted | declined | revoked | expired

Expiry is lazy: a pending org invitation whose expires_at has passed is
flipped to `expired` the moment it is observed.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.exceptions import (
    Conflict,
    InvitationExpired,
    InvitationNotPending,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from parley.core.security import create_invitation_token, is_expired, utcnow
from parley.models.invitation import (
    InvitationStatus,
    OrgInvitation,
    WorkspaceInvitation,
    WorkspaceInvitationStatus,
)
from parley.models.member import MemberStatus, OrgMember, OrgRole
from parley.models.organization import Organization
from parley.models.user import User
from parley.models.workspace import Workspace, WorkspaceMember, WorkspaceRole, WorkspaceType
from parley.schemas.invitation import (
    InvitationPreviewResponse,
    OrgInvitationCreateRequest,
    OrgInvitationResponse,
    WorkspaceInvitationCreateRequest,
    WorkspaceInvitationResponse,
    WorkspaceInvitationsListResponse,
)
from parley.schemas.organization import OrganizationResponse
from parley.services.organization_service import ensure_member_capacity
from parley.services.permissions import AccessControl, OrgCapability
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)


class InvitationService:
    """Handles organization and workspace invitations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.sessions = SessionStore(db)
        self.access = AccessControl(db)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_org_invitation_by_token(self, invite_token: str) -> OrgInvitation:
        result = await self.db.execute(
            select(OrgInvitation).where(OrgInvitation.token == invite_token)
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFound("Invitation not found", code="INVITE_NOT_FOUND")
        return invitation

    async def _ensure_actionable(self, invitation: OrgInvitation) -> None:
        """
        Reject invitations that can no longer be accepted or declined.

        A pending invitation found past its expiry is flipped to `expired`
        and committed before the error is raised.
        """
        if invitation.status == InvitationStatus.expired:
            raise InvitationExpired()
        if invitation.status != InvitationStatus.pending:
            raise InvitationNotPending()
        if is_expired(invitation.expires_at):
            invitation.status = InvitationStatus.expired
            await self.db.commit()
            logger.info("Invitation expired on access: invitation_id=%s", invitation.id)
            raise InvitationExpired()

    @staticmethod
    def _email_matches(user: User, invitation: OrgInvitation) -> bool:
        return user.email is not None and user.email.lower() == invitation.email.lower()

    # -----------------------------------------------------------------------
    # Create Organization Invitation
    # -----------------------------------------------------------------------

    async def create_org_invitation(
        self, token: str, org_id: UUID, data: OrgInvitationCreateRequest
    ) -> OrgInvitationResponse:
        """
        Invite an e-mail address to an organization.

        - Requires inviteMembers; inviting an admin requires isAdmin
        - Rejects addresses that already belong to an active member
        - At most one pending invitation per (org, email)
        - Queues the invitation email via Celery
        """
        user = await self.sessions.require(token)
        org, member = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.invite_members
        )
        if data.role == OrgRole.admin and member.role not in (OrgRole.owner, OrgRole.admin):
            raise Unauthorized("Only admins can invite admins", code="INSUFFICIENT_ROLE")

        email = str(data.email).lower()

        existing_member = await self.db.execute(
            select(OrgMember)
            .join(User, OrgMember.user_id == User.id)
            .where(
                OrgMember.org_id == org.id,
                User.email == email,
                OrgMember.status == MemberStatus.active,
            )
        )
        if existing_member.scalar_one_or_none() is not None:
            raise Conflict("User is already a member of this organization", code="ALREADY_MEMBER")

        pending_result = await self.db.execute(
            select(OrgInvitation).where(
                OrgInvitation.org_id == org.id,
                OrgInvitation.email == email,
                OrgInvitation.status == InvitationStatus.pending,
            )
        )
        for pending in pending_result.scalars().all():
            if is_expired(pending.expires_at):
                pending.status = InvitationStatus.expired
                continue
            raise Conflict(
                "A pending invitation already exists for this email", code="INVITE_EXISTS"
            )

        invitation = OrgInvitation(
            org_id=org.id,
            email=email,
            first_name=data.first_name,
            last_name=data.last_name,
            token=create_invitation_token(),
            role=data.role,
            can_create_workspaces=data.can_create_workspaces,
            can_invite_members=data.can_invite_members,
            invited_by=user.id,
            invited_at=utcnow(),
            expires_at=utcnow() + timedelta(days=settings.INVITATION_TTL_DAYS),
            status=InvitationStatus.pending,
            personal_message=data.personal_message,
        )
        self.db.add(invitation)
        await self.db.flush()

        from parley.workers.email_tasks import send_invitation_email
        send_invitation_email.delay(
            to_email=email,
            org_name=org.name,
            inviter_name=user.display_name,
            role=data.role.value,
            invitation_token=invitation.token,
            frontend_url=settings.FRONTEND_URL,
            personal_message=data.personal_message,
        )

        logger.info(
            "Org invitation created: invitation_id=%s org_id=%s role=%s",
            invitation.id, org.id, data.role.value,
        )
        return OrgInvitationResponse.model_validate(invitation)

    # -----------------------------------------------------------------------
    # Accept / Decline Organization Invitation
    # -----------------------------------------------------------------------

    async def accept_org_invitation(self, token: str, invite_token: str) -> OrganizationResponse:
        """
        Accept an invitation.

        - Invitation must be pending and unexpired
        - Caller's email must match the invited email
        - A caller who is already a member gets the invitation reconciled
          to accepted and a Conflict
        - New members join every public, non-archived workspace
        """
        user = await self.sessions.require(token)
        invitation = await self._get_org_invitation_by_token(invite_token)
        await self._ensure_actionable(invitation)

        org = await self.access.get_active_org(invitation.org_id)

        if not self._email_matches(user, invitation):
            raise Unauthorized(
                "Invitation was sent to a different email address", code="EMAIL_MISMATCH"
            )

        now = utcnow()
        if await self.access.get_org_membership(user.id, org.id) is not None:
            invitation.status = InvitationStatus.accepted
            invitation.accepted_at = now
            invitation.accepted_by = user.id
            await self.db.commit()
            raise Conflict(
                "You are already a member of this organization", code="ALREADY_MEMBER"
            )

        await ensure_member_capacity(self.db, org)

        self.db.add(
            OrgMember(
                org_id=org.id,
                user_id=user.id,
                role=invitation.role,
                can_create_workspaces=invitation.can_create_workspaces,
                can_invite_members=invitation.can_invite_members,
                can_manage_billing=False,
                status=MemberStatus.active,
                invited_by=invitation.invited_by,
                invite_accepted_at=now,
                joined_at=now,
            )
        )
        invitation.status = InvitationStatus.accepted
        invitation.accepted_at = now
        invitation.accepted_by = user.id

        public_workspaces = await self.db.execute(
            select(Workspace).where(
                Workspace.org_id == org.id,
                Workspace.type == WorkspaceType.public,
                Workspace.is_archived.is_(False),
            )
        )
        for workspace in public_workspaces.scalars().all():
            self.db.add(
                WorkspaceMember(
                    workspace_id=workspace.id,
                    user_id=user.id,
                    org_id=org.id,
                    role=WorkspaceRole.member,
                    added_by=invitation.invited_by,
                    joined_at=now,
                )
            )

        await self.db.flush()
        logger.info(
            "Org invitation accepted: invitation_id=%s org_id=%s user_id=%s",
            invitation.id, org.id, user.id,
        )
        return OrganizationResponse.model_validate(org)

    async def decline_org_invitation(self, token: str, invite_token: str) -> OrgInvitationResponse:
        """Decline an invitation addressed to the caller's email."""
        user = await self.sessions.require(token)
        invitation = await self._get_org_invitation_by_token(invite_token)
        await self._ensure_actionable(invitation)

        if not self._email_matches(user, invitation):
            raise Unauthorized(
                "Invitation was sent to a different email address", code="EMAIL_MISMATCH"
            )

        invitation.status = InvitationStatus.declined
        invitation.declined_at = utcnow()
        await self.db.flush()

        logger.info("Org invitation declined: invitation_id=%s", invitation.id)
        return OrgInvitationResponse.model_validate(invitation)

    # -----------------------------------------------------------------------
    # Revoke Organization Invitation
    # -----------------------------------------------------------------------

    async def revoke_org_invitation(self, token: str, invitation_id: UUID) -> OrgInvitationResponse:
        """Flip a pending invitation to revoked. Inviter or org admin only; the row is kept."""
        user = await self.sessions.require(token)
        invitation = await self.db.get(OrgInvitation, invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found", code="INVITE_NOT_FOUND")

        await self.access.require_org_member(user.id, invitation.org_id)
        if invitation.invited_by != user.id and not await self.access.has_org_capability(
            user.id, invitation.org_id, OrgCapability.is_admin
        ):
            raise Unauthorized("Not authorized to revoke this invitation", code="NOT_AUTHORIZED")

        if invitation.status != InvitationStatus.pending:
            raise InvitationNotPending()

        invitation.status = InvitationStatus.revoked
        await self.db.flush()

        logger.info("Org invitation revoked: invitation_id=%s by=%s", invitation.id, user.id)
        return OrgInvitationResponse.model_validate(invitation)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def _preview(self, invitation: OrgInvitation) -> InvitationPreviewResponse:
        org = await self.db.get(Organization, invitation.org_id)
        inviter = await self.db.get(User, invitation.invited_by)
        return InvitationPreviewResponse(
            id=invitation.id,
            org_id=invitation.org_id,
            org_name=org.name if org is not None else "",
            org_slug=org.slug if org is not None else "",
            email=invitation.email,
            role=invitation.role,
            inviter_name=inviter.display_name if inviter is not None else "Unknown",
            expires_at=invitation.expires_at,
            status=invitation.status,
            is_expired=invitation.status == InvitationStatus.expired,
            personal_message=invitation.personal_message,
        )

    async def get_invitation_preview(self, token: str, invite_token: str) -> InvitationPreviewResponse:
        """What the invitee sees before deciding. Stale pending rows are expired on sight."""
        await self.sessions.require(token)
        invitation = await self._get_org_invitation_by_token(invite_token)
        await self.access.get_active_org(invitation.org_id)

        if invitation.status == InvitationStatus.pending and is_expired(invitation.expires_at):
            invitation.status = InvitationStatus.expired
            await self.db.flush()

        return await self._preview(invitation)

    async def list_my_invitations(self, token: str) -> list[InvitationPreviewResponse]:
        """Pending, unexpired invitations addressed to the caller's email."""
        user = await self.sessions.require(token)
        if not user.email:
            return []

        result = await self.db.execute(
            select(OrgInvitation)
            .join(Organization, OrgInvitation.org_id == Organization.id)
            .where(
                OrgInvitation.email == user.email.lower(),
                OrgInvitation.status == InvitationStatus.pending,
                Organization.is_active.is_(True),
            )
            .order_by(OrgInvitation.invited_at.desc())
        )
        return [
            await self._preview(invitation)
            for invitation in result.scalars().all()
            if not is_expired(invitation.expires_at)
        ]

    # -----------------------------------------------------------------------
    # Sweep
    # -----------------------------------------------------------------------

    async def sweep_expired_invitations(self) -> int:
        """Flip every stale pending org invitation to expired. Optional hygiene."""
        result = await self.db.execute(
            update(OrgInvitation)
            .where(
                OrgInvitation.status == InvitationStatus.pending,
                OrgInvitation.expires_at < utcnow(),
            )
            .values(status=InvitationStatus.expired)
            .execution_options(synchronize_session=False)
        )
        await self.db.flush()
        swept = result.rowcount or 0
        if swept:
            logger.info("Swept %d expired invitations", swept)
        return swept

    # -----------------------------------------------------------------------
    # Workspace Invitations
    # -----------------------------------------------------------------------

    async def create_workspace_invitation(
        self, token: str, workspace_id: UUID, data: WorkspaceInvitationCreateRequest
    ) -> WorkspaceInvitationResponse:
        """
        Invite an existing org member to a workspace. Workspace admin only.

        A workspace invitation can never onboard someone to the organization.
        """
        user = await self.sessions.require(token)
        workspace, _ = await self.access.require_workspace_admin(user.id, workspace_id)

        org_membership = await self.access.get_org_membership(data.user_id, workspace.org_id)
        if org_membership is None or org_membership.status != MemberStatus.active:
            raise ValidationFailed(
                "Invitee must be an active organization member", code="NOT_ORG_MEMBER"
            )

        if await self.access.get_workspace_membership(data.user_id, workspace_id) is not None:
            raise Conflict("User is already a workspace member", code="ALREADY_MEMBER")

        pending = await self.db.execute(
            select(WorkspaceInvitation).where(
                WorkspaceInvitation.workspace_id == workspace_id,
                WorkspaceInvitation.user_id == data.user_id,
                WorkspaceInvitation.status == WorkspaceInvitationStatus.pending,
            )
        )
        if pending.scalars().first() is not None:
            raise Conflict(
                "A pending invitation already exists for this user", code="INVITE_EXISTS"
            )

        invitation = WorkspaceInvitation(
            workspace_id=workspace.id,
            org_id=workspace.org_id,
            user_id=data.user_id,
            role=data.role,
            invited_by=user.id,
            invited_at=utcnow(),
            status=WorkspaceInvitationStatus.pending,
            personal_message=data.personal_message,
        )
        self.db.add(invitation)
        await self.db.flush()

        logger.info(
            "Workspace invitation created: invitation_id=%s workspace_id=%s user_id=%s",
            invitation.id, workspace.id, data.user_id,
        )
        return WorkspaceInvitationResponse.model_validate(invitation)

    async def _get_own_workspace_invitation(
        self, user: User, invitation_id: UUID
    ) -> WorkspaceInvitation:
        invitation = await self.db.get(WorkspaceInvitation, invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found", code="INVITE_NOT_FOUND")
        if invitation.user_id != user.id:
            raise Unauthorized("This invitation is for another user", code="NOT_INVITEE")
        if invitation.status != WorkspaceInvitationStatus.pending:
            raise InvitationNotPending()
        return invitation

    async def accept_workspace_invitation(
        self, token: str, invitation_id: UUID
    ) -> WorkspaceInvitationResponse:
        """Accept by user-id match. The invitee must still be an active org member."""
        user = await self.sessions.require(token)
        invitation = await self._get_own_workspace_invitation(user, invitation_id)
        workspace = await self.access.get_workspace(invitation.workspace_id)
        await self.access.require_org_member(user.id, workspace.org_id)

        now = utcnow()
        if await self.access.get_workspace_membership(user.id, workspace.id) is not None:
            invitation.status = WorkspaceInvitationStatus.accepted
            invitation.accepted_at = now
            await self.db.commit()
            raise Conflict("You are already a member of this workspace", code="ALREADY_MEMBER")

        self.db.add(
            WorkspaceMember(
                workspace_id=workspace.id,
                user_id=user.id,
                org_id=workspace.org_id,
                role=invitation.role,
                added_by=invitation.invited_by,
                joined_at=now,
            )
        )
        invitation.status = WorkspaceInvitationStatus.accepted
        invitation.accepted_at = now
        await self.db.flush()

        logger.info(
            "Workspace invitation accepted: invitation_id=%s workspace_id=%s user_id=%s",
            invitation.id, workspace.id, user.id,
        )
        return WorkspaceInvitationResponse.model_validate(invitation)

    async def decline_workspace_invitation(
        self, token: str, invitation_id: UUID
    ) -> WorkspaceInvitationResponse:
        user = await self.sessions.require(token)
        invitation = await self._get_own_workspace_invitation(user, invitation_id)

        invitation.status = WorkspaceInvitationStatus.declined
        invitation.declined_at = utcnow()
        await self.db.flush()

        logger.info("Workspace invitation declined: invitation_id=%s", invitation.id)
        return WorkspaceInvitationResponse.model_validate(invitation)

    async def revoke_workspace_invitation(self, token: str, invitation_id: UUID) -> None:
        """Hard delete a pending workspace invitation. Inviter or workspace admin only."""
        user = await self.sessions.require(token)
        invitation = await self.db.get(WorkspaceInvitation, invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found", code="INVITE_NOT_FOUND")

        if invitation.invited_by != user.id and not await self.access.is_workspace_admin(
            user.id, invitation.workspace_id
        ):
            raise Unauthorized("Not authorized to revoke this invitation", code="NOT_AUTHORIZED")

        if invitation.status != WorkspaceInvitationStatus.pending:
            raise InvitationNotPending()

        await self.db.delete(invitation)
        await self.db.flush()
        logger.info("Workspace invitation revoked: invitation_id=%s by=%s", invitation_id, user.id)

    async def list_my_workspace_invitations(self, token: str) -> WorkspaceInvitationsListResponse:
        user = await self.sessions.require(token)
        result = await self.db.execute(
            select(WorkspaceInvitation)
            .where(
                WorkspaceInvitation.user_id == user.id,
                WorkspaceInvitation.status == WorkspaceInvitationStatus.pending,
            )
            .order_by(WorkspaceInvitation.invited_at.desc())
        )
        invitations = [
            WorkspaceInvitationResponse.model_validate(invitation)
            for invitation in result.scalars().all()
        ]
        return WorkspaceInvitationsListResponse(invitations=invitations, total=len(invitations))
