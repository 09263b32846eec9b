"""
Organization management endpoints.

Create, update, delete, member management, pending invitations.
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.database import get_db
from parley.core.dependencies import get_redis, get_session_token
from parley.schemas.invitation import OrgInvitationsListResponse
from parley.schemas.organization import (
    MemberAddRequest,
    MemberResponse,
    MemberRoleUpdateRequest,
    MembersListResponse,
    MemberStatusUpdateRequest,
    OrganizationCreateRequest,
    OrganizationDetailResponse,
    OrganizationListResponse,
    OrganizationUpdateRequest,
)
from parley.services.organization_service import OrganizationService

router = APIRouter()


def get_org_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# Create / List
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=OrganizationDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new organization",
)
async def create_organization(
    data: OrganizationCreateRequest,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationDetailResponse:
    """
    Create a new organization.

    - Slug must be globally unique (3-50 chars, lowercase alphanumeric + hyphens)
    - Starts on the free plan with a 30-day trial
    - Creator is automatically assigned Owner role with every capability
    """
    return await service.create_organization(token, data)


@router.get(
    "",
    response_model=OrganizationListResponse,
    summary="List my organizations",
)
async def list_my_organizations(
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationListResponse:
    return await service.list_my_organizations(token)


# ---------------------------------------------------------------------------
# Get / Update / Delete
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}",
    response_model=OrganizationDetailResponse,
    summary="Get organization",
)
async def get_organization(
    org_id: UUID,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationDetailResponse:
    """Get organization details. Must be an active member."""
    return await service.get_organization(token, org_id)


@router.patch(
    "/{org_id}",
    response_model=OrganizationDetailResponse,
    summary="Update organization",
)
async def update_organization(
    org_id: UUID,
    data: OrganizationUpdateRequest,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationDetailResponse:
    """Update organization settings. Requires Owner or Admin role."""
    return await service.update_organization(token, org_id, data)


@router.delete(
    "/{org_id}",
    status_code=status.HTTP_200_OK,
    summary="Deactivate organization",
)
async def delete_organization(
    org_id: UUID,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> dict:
    """Soft-delete the organization. Owner only."""
    await service.delete_organization(token, org_id)
    return {}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}/members",
    response_model=MembersListResponse,
    summary="List organization members",
)
async def list_members(
    org_id: UUID,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> MembersListResponse:
    return await service.list_members(token, org_id)


@router.post(
    "/{org_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an existing user as a member",
)
async def add_member(
    org_id: UUID,
    data: MemberAddRequest,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> MemberResponse:
    """
    Add a registered user (looked up by e-mail) to the organization.

    - Requires the invite-members capability
    - Fails once the plan's member limit is reached
    """
    return await service.add_member(token, org_id, data)


@router.patch(
    "/{org_id}/members/{user_id}",
    response_model=MemberResponse,
    summary="Update a member's role",
)
async def update_member_role(
    org_id: UUID,
    user_id: UUID,
    data: MemberRoleUpdateRequest,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> MemberResponse:
    """
    Change a member's role and capability flags.

    - Requires Owner or Admin role
    - Only an owner can grant owner or change an owner's role
    """
    return await service.update_member_role(token, org_id, user_id, data)


@router.put(
    "/{org_id}/members/{user_id}/status",
    response_model=MemberResponse,
    summary="Suspend or reactivate a member",
)
async def set_member_status(
    org_id: UUID,
    user_id: UUID,
    data: MemberStatusUpdateRequest,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> MemberResponse:
    return await service.set_member_status(token, org_id, user_id, data.status)


@router.delete(
    "/{org_id}/members/{user_id}",
    status_code=status.HTTP_200_OK,
    summary="Remove a member from the organization",
)
async def remove_member(
    org_id: UUID,
    user_id: UUID,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> dict:
    """
    Remove a member. Members may leave on their own.

    - The last owner cannot be removed
    - The member's workspace memberships in this organization are removed too
    """
    await service.remove_member(token, org_id, user_id)
    return {}


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}/invitations",
    response_model=OrgInvitationsListResponse,
    summary="List pending invitations",
)
async def list_invitations(
    org_id: UUID,
    token: str = Depends(get_session_token),
    service: OrganizationService = Depends(get_org_service),
) -> OrgInvitationsListResponse:
    return await service.list_invitations(token, org_id)
