"""
Workspace business logic.

Workspace CRUD, public joins and workspace member management.
Every workspace row carries its org_id; org-level checks go through
AccessControl before workspace-level ones.
"""

from __future__ import annotations

import logging
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
from parley.core.security import utcnow
from parley.core.storage import BlobStore
from parley.core.storage import blob_store as default_blob_store
from parley.models.file import File
from parley.models.invitation import WorkspaceInvitation, WorkspaceInvitationStatus
from parley.models.member import MemberStatus
from parley.models.message import Message, MessageRead, Reaction
from parley.models.user import User
from parley.models.workspace import Workspace, WorkspaceMember, WorkspaceRole, WorkspaceType
from parley.schemas.auth import UserSnapshot
from parley.schemas.workspace import (
    NotificationSettingsRequest,
    WorkspaceCreateRequest,
    WorkspaceListResponse,
    WorkspaceMemberAddRequest,
    WorkspaceMemberResponse,
    WorkspaceMembersListResponse,
    WorkspaceResponse,
    WorkspaceSummaryResponse,
    WorkspaceUpdateRequest,
)
from parley.services.permissions import AccessControl, OrgCapability
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)


def _summary(workspace: Workspace, membership: WorkspaceMember | None) -> WorkspaceSummaryResponse:
    return WorkspaceSummaryResponse(
        **WorkspaceResponse.model_validate(workspace).model_dump(),
        my_role=membership.role if membership is not None else None,
        is_member=membership is not None,
    )


def _member_response(member: WorkspaceMember, user: User | None) -> WorkspaceMemberResponse:
    response = WorkspaceMemberResponse.model_validate(member)
    if user is not None:
        response.profile = UserSnapshot.model_validate(user)
    return response


class WorkspaceService:
    """Handles all workspace operations."""

    def __init__(
        self, db: AsyncSession, redis: aioredis.Redis, blob_store: BlobStore | None = None
    ) -> None:
        self.db = db
        self.redis = redis
        self.blob_store = blob_store or default_blob_store
        self.sessions = SessionStore(db)
        self.access = AccessControl(db)

    async def _ensure_name_available(
        self, org_id: UUID, name: str, exclude_id: UUID | None = None
    ) -> None:
        query = select(Workspace.id).where(
            Workspace.org_id == org_id,
            func.lower(Workspace.name) == name.lower(),
        )
        if exclude_id is not None:
            query = query.where(Workspace.id != exclude_id)
        result = await self.db.execute(query)
        if result.first() is not None:
            raise Conflict("Workspace name already exists", code="WORKSPACE_NAME_TAKEN")

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create_workspace(
        self, token: str, org_id: UUID, data: WorkspaceCreateRequest
    ) -> WorkspaceSummaryResponse:
        """
        Create a workspace inside an organization.

        Requires createWorkspaces. Names are unique per organization
        (case-insensitive). The creator becomes workspace admin.
        """
        user = await self.sessions.require(token)
        org, _ = await self.access.require_org_capability(
            user.id, org_id, OrgCapability.create_workspaces
        )
        await self._ensure_name_available(org.id, data.name)

        workspace = Workspace(
            org_id=org.id,
            name=data.name,
            description=data.description,
            type=data.type,
            purpose=data.purpose,
            is_archived=False,
            created_by=user.id,
            allow_threads=data.allow_threads,
            allow_file_uploads=data.allow_file_uploads,
            retention_days=data.retention_days,
        )
        self.db.add(workspace)
        await self.db.flush()

        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            org_id=org.id,
            role=WorkspaceRole.admin,
            added_by=user.id,
        )
        self.db.add(membership)
        await self.db.flush()

        logger.info("Workspace created: workspace_id=%s org_id=%s by=%s", workspace.id, org.id, user.id)
        return _summary(workspace, membership)

    # -----------------------------------------------------------------------
    # Get / List
    # -----------------------------------------------------------------------

    async def get_workspace(self, token: str, workspace_id: UUID) -> WorkspaceSummaryResponse:
        """
        Members can always see their workspace; other active org members
        can see public, non-archived ones.
        """
        user = await self.sessions.require(token)
        workspace = await self.access.get_workspace(workspace_id)
        await self.access.require_org_member(user.id, workspace.org_id)

        membership = await self.access.get_workspace_membership(user.id, workspace_id)
        if membership is None and (workspace.type != WorkspaceType.public or workspace.is_archived):
            raise Unauthorized(
                "You are not a member of this workspace", code="NOT_A_WORKSPACE_MEMBER"
            )
        return _summary(workspace, membership)

    async def list_workspaces(self, token: str, org_id: UUID) -> WorkspaceListResponse:
        """The caller's workspaces plus joinable public ones."""
        user = await self.sessions.require(token)
        await self.access.require_org_member(user.id, org_id)

        result = await self.db.execute(
            select(Workspace, WorkspaceMember)
            .outerjoin(
                WorkspaceMember,
                (WorkspaceMember.workspace_id == Workspace.id)
                & (WorkspaceMember.user_id == user.id),
            )
            .where(Workspace.org_id == org_id)
            .order_by(Workspace.name)
        )
        workspaces = [
            _summary(workspace, membership)
            for workspace, membership in result.all()
            if membership is not None
            or (workspace.type == WorkspaceType.public and not workspace.is_archived)
        ]
        return WorkspaceListResponse(workspaces=workspaces, total=len(workspaces))

    # -----------------------------------------------------------------------
    # Update / Archive
    # -----------------------------------------------------------------------

    async def update_workspace(
        self, token: str, workspace_id: UUID, data: WorkspaceUpdateRequest
    ) -> WorkspaceSummaryResponse:
        """Rename or change settings. Workspace admin only."""
        user = await self.sessions.require(token)
        workspace, membership = await self.access.require_workspace_admin(user.id, workspace_id)

        updates = data.model_dump(exclude_unset=True)
        name = updates.get("name")
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationFailed("Workspace name cannot be blank")
            if name.lower() != workspace.name.lower():
                await self._ensure_name_available(workspace.org_id, name, exclude_id=workspace.id)
            updates["name"] = name

        for field, value in updates.items():
            if value is None and field in ("name", "allow_threads", "allow_file_uploads"):
                continue
            setattr(workspace, field, value)

        await self.db.flush()
        return _summary(workspace, membership)

    async def archive_workspace(self, token: str, workspace_id: UUID) -> WorkspaceSummaryResponse:
        """Archive: no new messages, hidden from public listings. Workspace admin only."""
        user = await self.sessions.require(token)
        workspace, membership = await self.access.require_workspace_admin(user.id, workspace_id)

        workspace.type = WorkspaceType.archived
        workspace.is_archived = True
        await self.db.flush()

        logger.info("Workspace archived: workspace_id=%s by=%s", workspace.id, user.id)
        return _summary(workspace, membership)

    async def delete_workspace(self, token: str, workspace_id: UUID) -> None:
        """
        Permanently delete a workspace. Workspace admin only.

        Messages go with it, together with their reactions and read receipts,
        as do memberships, workspace invitations and files scoped to the
        workspace. Blobs of files that were still live are removed from the
        blob store.
        """
        user = await self.sessions.require(token)
        workspace, _ = await self.access.require_workspace_admin(user.id, workspace_id)

        files = await self.db.execute(select(File).where(File.workspace_id == workspace.id))
        for file in files.scalars().all():
            if not file.is_deleted:
                await self.blob_store.delete(file.storage_id)
            await self.db.delete(file)
        await self.db.flush()

        message_ids = select(Message.id).where(Message.workspace_id == workspace.id)
        await self.db.execute(delete(MessageRead).where(MessageRead.message_id.in_(message_ids)))
        await self.db.execute(delete(Reaction).where(Reaction.message_id.in_(message_ids)))
        await self.db.execute(delete(Message).where(Message.workspace_id == workspace.id))
        await self.db.execute(
            delete(WorkspaceInvitation).where(WorkspaceInvitation.workspace_id == workspace.id)
        )
        await self.db.execute(
            delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace.id)
        )
        await self.db.delete(workspace)
        await self.db.flush()

        logger.info("Workspace deleted: workspace_id=%s by=%s", workspace_id, user.id)

    # -----------------------------------------------------------------------
    # Join
    # -----------------------------------------------------------------------

    async def join_workspace(self, token: str, workspace_id: UUID) -> WorkspaceMemberResponse:
        """
        Self-join a public workspace.

        Any active org member may join; the join is recorded as an
        auto-accepted workspace invitation.
        """
        user = await self.sessions.require(token)
        workspace = await self.access.get_workspace(workspace_id)
        await self.access.require_org_member(user.id, workspace.org_id)

        if workspace.type != WorkspaceType.public or workspace.is_archived:
            raise Unauthorized("Only public workspaces can be joined", code="WORKSPACE_NOT_PUBLIC")

        if await self.access.get_workspace_membership(user.id, workspace_id) is not None:
            raise Conflict("You are already a member of this workspace", code="ALREADY_MEMBER")

        now = utcnow()
        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            org_id=workspace.org_id,
            role=WorkspaceRole.member,
            added_by=user.id,
            joined_at=now,
        )
        self.db.add(membership)
        self.db.add(
            WorkspaceInvitation(
                workspace_id=workspace.id,
                org_id=workspace.org_id,
                user_id=user.id,
                role=WorkspaceRole.member,
                invited_by=user.id,
                invited_at=now,
                status=WorkspaceInvitationStatus.auto_accepted,
                accepted_at=now,
            )
        )
        await self.db.flush()

        logger.info("Workspace joined: workspace_id=%s user_id=%s", workspace.id, user.id)
        return _member_response(membership, user)

    # -----------------------------------------------------------------------
    # Members
    # -----------------------------------------------------------------------

    async def list_members(self, token: str, workspace_id: UUID) -> WorkspaceMembersListResponse:
        user = await self.sessions.require(token)
        await self.access.require_workspace_member(user.id, workspace_id)

        result = await self.db.execute(
            select(WorkspaceMember, User)
            .join(User, WorkspaceMember.user_id == User.id)
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.joined_at)
        )
        members = [_member_response(member, member_user) for member, member_user in result.all()]
        return WorkspaceMembersListResponse(members=members, total=len(members))

    async def add_member(
        self, token: str, workspace_id: UUID, data: WorkspaceMemberAddRequest
    ) -> WorkspaceMemberResponse:
        """Add an active org member directly. Workspace admin only."""
        user = await self.sessions.require(token)
        workspace, _ = await self.access.require_workspace_admin(user.id, workspace_id)

        org_membership = await self.access.get_org_membership(data.user_id, workspace.org_id)
        if org_membership is None or org_membership.status != MemberStatus.active:
            raise ValidationFailed(
                "User must be an active organization member first", code="NOT_ORG_MEMBER"
            )

        if await self.access.get_workspace_membership(data.user_id, workspace_id) is not None:
            raise Conflict("User is already a workspace member", code="ALREADY_MEMBER")

        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=data.user_id,
            org_id=workspace.org_id,
            role=data.role,
            added_by=user.id,
        )
        self.db.add(membership)
        await self.db.flush()

        logger.info(
            "Workspace member added: workspace_id=%s user_id=%s role=%s",
            workspace.id, data.user_id, data.role.value,
        )
        target_user = await self.db.get(User, data.user_id)
        return _member_response(membership, target_user)

    async def update_member_role(
        self, token: str, workspace_id: UUID, target_user_id: UUID, role: WorkspaceRole
    ) -> WorkspaceMemberResponse:
        """Change a member's workspace role. Workspace admin only."""
        user = await self.sessions.require(token)
        await self.access.require_workspace_admin(user.id, workspace_id)

        target = await self.access.get_workspace_membership(target_user_id, workspace_id)
        if target is None:
            raise NotFound("Member not found", code="MEMBER_NOT_FOUND")

        target.role = role
        await self.db.flush()

        logger.info(
            "Workspace role updated: workspace_id=%s user_id=%s role=%s",
            workspace_id, target_user_id, role.value,
        )
        target_user = await self.db.get(User, target_user_id)
        return _member_response(target, target_user)

    async def remove_member(self, token: str, workspace_id: UUID, target_user_id: UUID) -> None:
        """
        Remove a workspace member.

        Members may leave on their own; removing others needs workspace admin.
        The last admin of a non-archived workspace cannot be removed.
        """
        user = await self.sessions.require(token)
        workspace = await self.access.get_workspace(workspace_id)

        target = await self.access.get_workspace_membership(target_user_id, workspace_id)
        if target is None:
            raise NotFound("Member not found", code="MEMBER_NOT_FOUND")

        if target_user_id != user.id and not await self.access.is_workspace_admin(
            user.id, workspace_id
        ):
            raise Unauthorized("Not authorized to remove members", code="NOT_WORKSPACE_ADMIN")

        if target.role == WorkspaceRole.admin and not workspace.is_archived:
            admin_count = await self.db.execute(
                select(func.count())
                .select_from(WorkspaceMember)
                .where(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.role == WorkspaceRole.admin,
                )
            )
            if admin_count.scalar_one() <= 1:
                raise InvariantViolation(
                    "Cannot remove the last workspace admin", code="LAST_WORKSPACE_ADMIN"
                )

        await self.db.delete(target)
        await self.db.flush()
        logger.info(
            "Workspace member removed: workspace_id=%s user_id=%s by=%s",
            workspace_id, target_user_id, user.id,
        )

    async def update_notifications(
        self, token: str, workspace_id: UUID, data: NotificationSettingsRequest
    ) -> WorkspaceMemberResponse:
        """Update the caller's own notification preferences."""
        user = await self.sessions.require(token)
        _, membership = await self.access.require_workspace_member(user.id, workspace_id)

        membership.notifications_enabled = data.notifications_enabled
        membership.mention_notifications = data.mention_notifications
        await self.db.flush()
        return _member_response(membership, user)
