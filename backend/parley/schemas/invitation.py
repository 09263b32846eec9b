"""
Invitation schemas.

Request/response models for organization and workspace invitations.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from parley.models.invitation import InvitationStatus, WorkspaceInvitationStatus
from parley.models.member import OrgRole
from parley.models.workspace import WorkspaceRole


# ---------------------------------------------------------------------------
# Organization invitations
# ---------------------------------------------------------------------------

class OrgInvitationCreateRequest(BaseModel):
    """Request body for POST /organizations/{org_id}/invitations."""

    email: EmailStr
    role: OrgRole = OrgRole.member
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    can_create_workspaces: bool = False
    can_invite_members: bool = False
    personal_message: str | None = Field(default=None, max_length=1000)

    @field_validator("role")
    @classmethod
    def role_not_owner(cls, v: OrgRole) -> OrgRole:
        if v == OrgRole.owner:
            raise ValueError("Invitations cannot grant the owner role")
        return v


class OrgInvitationResponse(BaseModel):
    """Invitation as seen by organization admins. Includes the token."""

    id: UUID
    org_id: UUID
    email: str
    first_name: str | None
    last_name: str | None
    role: OrgRole
    can_create_workspaces: bool
    can_invite_members: bool
    token: str
    invited_by: UUID
    invited_at: datetime
    expires_at: datetime
    status: InvitationStatus
    accepted_at: datetime | None
    declined_at: datetime | None
    personal_message: str | None

    model_config = {"from_attributes": True}


class OrgInvitationsListResponse(BaseModel):
    invitations: list[OrgInvitationResponse]
    total: int


class InvitationPreviewResponse(BaseModel):
    """What an invitee sees before accepting: no token, no audit fields."""

    id: UUID
    org_id: UUID
    org_name: str
    org_slug: str
    email: str
    role: OrgRole
    inviter_name: str
    expires_at: datetime
    status: InvitationStatus
    is_expired: bool
    personal_message: str | None


class InvitationTokenRequest(BaseModel):
    """Request body for accept/decline by token."""

    token: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Workspace invitations
# ---------------------------------------------------------------------------

class WorkspaceInvitationCreateRequest(BaseModel):
    """Request body for POST /workspaces/{workspace_id}/invitations."""

    user_id: UUID
    role: WorkspaceRole = WorkspaceRole.member
    personal_message: str | None = Field(default=None, max_length=1000)


class WorkspaceInvitationResponse(BaseModel):
    id: UUID
    workspace_id: UUID
    org_id: UUID
    user_id: UUID
    role: WorkspaceRole
    invited_by: UUID
    invited_at: datetime
    status: WorkspaceInvitationStatus
    accepted_at: datetime | None
    declined_at: datetime | None
    personal_message: str | None

    model_config = {"from_attributes": True}


class WorkspaceInvitationsListResponse(BaseModel):
    invitations: list[WorkspaceInvitationResponse]
    total: int
