"""
Workspace endpoints.

Create, list, update, archive, delete, join, member management and
notification preferences.
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.database import get_db
from parley.core.dependencies import get_blob_store, get_redis, get_session_token
from parley.core.storage import BlobStore
from parley.schemas.workspace import (
    NotificationSettingsRequest,
    WorkspaceCreateRequest,
    WorkspaceListResponse,
    WorkspaceMemberAddRequest,
    WorkspaceMemberResponse,
    WorkspaceMembersListResponse,
    WorkspaceRoleUpdateRequest,
    WorkspaceSummaryResponse,
    WorkspaceUpdateRequest,
)
from parley.services.workspace_service import WorkspaceService

router = APIRouter()


def get_workspace_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    blob_store: BlobStore = Depends(get_blob_store),
) -> WorkspaceService:
    """Dependency that constructs WorkspaceService."""
    return WorkspaceService(db=db, redis=redis, blob_store=blob_store)


# ---------------------------------------------------------------------------
# Create / List
# ---------------------------------------------------------------------------

@router.post(
    "/organizations/{org_id}/workspaces",
    response_model=WorkspaceSummaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workspace",
)
async def create_workspace(
    org_id: UUID,
    data: WorkspaceCreateRequest,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceSummaryResponse:
    """
    Create a workspace in an organization.

    - Requires the create-workspaces capability
    - Name must be unique within the organization
    - Creator becomes workspace admin
    """
    return await service.create_workspace(token, org_id, data)


@router.get(
    "/organizations/{org_id}/workspaces",
    response_model=WorkspaceListResponse,
    summary="List workspaces",
)
async def list_workspaces(
    org_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceListResponse:
    """The caller's workspaces plus public ones they can join."""
    return await service.list_workspaces(token, org_id)


# ---------------------------------------------------------------------------
# Get / Update / Archive
# ---------------------------------------------------------------------------

@router.get(
    "/workspaces/{workspace_id}",
    response_model=WorkspaceSummaryResponse,
    summary="Get workspace",
)
async def get_workspace(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceSummaryResponse:
    return await service.get_workspace(token, workspace_id)


@router.patch(
    "/workspaces/{workspace_id}",
    response_model=WorkspaceSummaryResponse,
    summary="Update workspace",
)
async def update_workspace(
    workspace_id: UUID,
    data: WorkspaceUpdateRequest,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceSummaryResponse:
    """Rename or reconfigure a workspace. Workspace admin only."""
    return await service.update_workspace(token, workspace_id, data)


@router.post(
    "/workspaces/{workspace_id}/archive",
    response_model=WorkspaceSummaryResponse,
    summary="Archive workspace",
)
async def archive_workspace(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceSummaryResponse:
    """Archive a workspace. It stays readable but accepts no new messages."""
    return await service.archive_workspace(token, workspace_id)


@router.delete(
    "/workspaces/{workspace_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete workspace",
)
async def delete_workspace(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict:
    """Permanently delete a workspace with its messages and files. Workspace admin only."""
    await service.delete_workspace(token, workspace_id)
    return {}


@router.post(
    "/workspaces/{workspace_id}/join",
    response_model=WorkspaceMemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Join a public workspace",
)
async def join_workspace(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    return await service.join_workspace(token, workspace_id)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get(
    "/workspaces/{workspace_id}/members",
    response_model=WorkspaceMembersListResponse,
    summary="List workspace members",
)
async def list_members(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMembersListResponse:
    return await service.list_members(token, workspace_id)


@router.post(
    "/workspaces/{workspace_id}/members",
    response_model=WorkspaceMemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a workspace member",
)
async def add_member(
    workspace_id: UUID,
    data: WorkspaceMemberAddRequest,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    """Add an active organization member. Workspace admin only."""
    return await service.add_member(token, workspace_id, data)


@router.patch(
    "/workspaces/{workspace_id}/members/{user_id}",
    response_model=WorkspaceMemberResponse,
    summary="Change a workspace member's role",
)
async def update_member_role(
    workspace_id: UUID,
    user_id: UUID,
    data: WorkspaceRoleUpdateRequest,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    return await service.update_member_role(token, workspace_id, user_id, data.role)


@router.delete(
    "/workspaces/{workspace_id}/members/{user_id}",
    status_code=status.HTTP_200_OK,
    summary="Remove a workspace member",
)
async def remove_member(
    workspace_id: UUID,
    user_id: UUID,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> dict:
    """
    Remove a member, or leave the workspace.

    The last admin of an active workspace cannot be removed.
    """
    await service.remove_member(token, workspace_id, user_id)
    return {}


@router.put(
    "/workspaces/{workspace_id}/notifications",
    response_model=WorkspaceMemberResponse,
    summary="Update notification preferences",
)
async def update_notifications(
    workspace_id: UUID,
    data: NotificationSettingsRequest,
    token: str = Depends(get_session_token),
    service: WorkspaceService = Depends(get_workspace_service),
) -> WorkspaceMemberResponse:
    return await service.update_notifications(token, workspace_id, data)
