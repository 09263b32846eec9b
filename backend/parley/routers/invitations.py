"""
Invitation endpoints.

Organization invitations (by e-mail, token based) and workspace
invitations (for existing organization members).
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.database import get_db
from parley.core.dependencies import get_redis, get_session_token
from parley.schemas.invitation import (
    InvitationPreviewResponse,
    InvitationTokenRequest,
    OrgInvitationCreateRequest,
    OrgInvitationResponse,
    WorkspaceInvitationCreateRequest,
    WorkspaceInvitationResponse,
    WorkspaceInvitationsListResponse,
)
from parley.schemas.organization import OrganizationResponse
from parley.services.invitation_service import InvitationService

router = APIRouter()


def get_invitation_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> InvitationService:
    """Dependency that constructs InvitationService."""
    return InvitationService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# Organization invitations
# ---------------------------------------------------------------------------

@router.post(
    "/organizations/{org_id}/invitations",
    response_model=OrgInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite someone to the organization",
)
async def create_org_invitation(
    org_id: UUID,
    data: OrgInvitationCreateRequest,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> OrgInvitationResponse:
    """
    Invite an e-mail address to the organization.

    - Requires the invite-members capability
    - One pending invitation per e-mail address
    - Sends invitation email via Celery
    - Token expires in 7 days
    """
    return await service.create_org_invitation(token, org_id, data)


@router.get(
    "/invitations/mine",
    response_model=list[InvitationPreviewResponse],
    summary="List invitations sent to my e-mail",
)
async def list_my_invitations(
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> list[InvitationPreviewResponse]:
    return await service.list_my_invitations(token)


@router.post(
    "/invitations/accept",
    response_model=OrganizationResponse,
    summary="Accept an invitation",
)
async def accept_org_invitation(
    data: InvitationTokenRequest,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> OrganizationResponse:
    """
    Accept an organization invitation.

    - User must be signed in with the e-mail the invitation was sent to
    - Invitation must be pending and not expired
    - Public workspaces of the organization are joined automatically
    """
    return await service.accept_org_invitation(token, data.token)


@router.post(
    "/invitations/decline",
    response_model=OrgInvitationResponse,
    summary="Decline an invitation",
)
async def decline_org_invitation(
    data: InvitationTokenRequest,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> OrgInvitationResponse:
    return await service.decline_org_invitation(token, data.token)


@router.get(
    "/invitations/preview/{invite_token}",
    response_model=InvitationPreviewResponse,
    summary="Preview an invitation",
)
async def get_invitation_preview(
    invite_token: str,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> InvitationPreviewResponse:
    return await service.get_invitation_preview(token, invite_token)


@router.delete(
    "/invitations/{invitation_id}",
    response_model=OrgInvitationResponse,
    summary="Revoke a pending invitation",
)
async def revoke_org_invitation(
    invitation_id: UUID,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> OrgInvitationResponse:
    """Revoke a pending invitation. Inviter, Owner or Admin."""
    return await service.revoke_org_invitation(token, invitation_id)


# ---------------------------------------------------------------------------
# Workspace invitations
# ---------------------------------------------------------------------------

@router.post(
    "/workspaces/{workspace_id}/invitations",
    response_model=WorkspaceInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite an organization member to a workspace",
)
async def create_workspace_invitation(
    workspace_id: UUID,
    data: WorkspaceInvitationCreateRequest,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> WorkspaceInvitationResponse:
    return await service.create_workspace_invitation(token, workspace_id, data)


@router.get(
    "/workspace-invitations/mine",
    response_model=WorkspaceInvitationsListResponse,
    summary="List my pending workspace invitations",
)
async def list_my_workspace_invitations(
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> WorkspaceInvitationsListResponse:
    return await service.list_my_workspace_invitations(token)


@router.post(
    "/workspace-invitations/{invitation_id}/accept",
    response_model=WorkspaceInvitationResponse,
    summary="Accept a workspace invitation",
)
async def accept_workspace_invitation(
    invitation_id: UUID,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> WorkspaceInvitationResponse:
    return await service.accept_workspace_invitation(token, invitation_id)


@router.post(
    "/workspace-invitations/{invitation_id}/decline",
    response_model=WorkspaceInvitationResponse,
    summary="Decline a workspace invitation",
)
async def decline_workspace_invitation(
    invitation_id: UUID,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> WorkspaceInvitationResponse:
    return await service.decline_workspace_invitation(token, invitation_id)


@router.delete(
    "/workspace-invitations/{invitation_id}",
    status_code=status.HTTP_200_OK,
    summary="Revoke a workspace invitation",
)
async def revoke_workspace_invitation(
    invitation_id: UUID,
    token: str = Depends(get_session_token),
    service: InvitationService = Depends(get_invitation_service),
) -> dict:
    """Delete a pending workspace invitation. Inviter or workspace admin."""
    await service.revoke_workspace_invitation(token, invitation_id)
    return {}
