"""
Workspace schemas.

Request/response models for workspace and workspace member endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from parley.models.workspace import WorkspacePurpose, WorkspaceRole, WorkspaceType
from parley.schemas.auth import UserSnapshot


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------

class WorkspaceCreateRequest(BaseModel):
    """Request body for POST /organizations/{org_id}/workspaces."""

    name: str = Field(min_length=1, max_length=80)
    description: str | None = Field(default=None, max_length=1000)
    type: WorkspaceType = WorkspaceType.public
    purpose: WorkspacePurpose | None = None
    allow_threads: bool = True
    allow_file_uploads: bool = True
    retention_days: int | None = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Workspace name cannot be blank")
        return v

    @field_validator("type")
    @classmethod
    def type_not_archived(cls, v: WorkspaceType) -> WorkspaceType:
        if v == WorkspaceType.archived:
            raise ValueError("Workspaces cannot be created archived")
        return v


class WorkspaceUpdateRequest(BaseModel):
    """Request body for PATCH /workspaces/{workspace_id}."""

    name: str | None = Field(default=None, min_length=1, max_length=80)
    description: str | None = Field(default=None, max_length=1000)
    purpose: WorkspacePurpose | None = None
    allow_threads: bool | None = None
    allow_file_uploads: bool | None = None
    retention_days: int | None = Field(default=None, ge=1)


class WorkspaceResponse(BaseModel):
    """Workspace detail response."""

    id: UUID
    org_id: UUID
    name: str
    description: str | None
    type: WorkspaceType
    purpose: WorkspacePurpose | None
    is_archived: bool
    created_by: UUID
    logo_file_id: UUID | None
    allow_threads: bool
    allow_file_uploads: bool
    retention_days: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class WorkspaceSummaryResponse(WorkspaceResponse):
    """Workspace as listed in the sidebar: includes the caller's role."""

    my_role: WorkspaceRole | None
    is_member: bool


class WorkspaceListResponse(BaseModel):
    workspaces: list[WorkspaceSummaryResponse]
    total: int


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class WorkspaceMemberResponse(BaseModel):
    id: UUID
    workspace_id: UUID
    user_id: UUID
    role: WorkspaceRole
    notifications_enabled: bool
    mention_notifications: bool
    joined_at: datetime
    profile: UserSnapshot | None = None

    model_config = {"from_attributes": True}


class WorkspaceMembersListResponse(BaseModel):
    members: list[WorkspaceMemberResponse]
    total: int


class WorkspaceMemberAddRequest(BaseModel):
    """Request body for POST /workspaces/{workspace_id}/members."""

    user_id: UUID
    role: WorkspaceRole = WorkspaceRole.member


class WorkspaceRoleUpdateRequest(BaseModel):
    role: WorkspaceRole


class NotificationSettingsRequest(BaseModel):
    """Request body for PUT /workspaces/{workspace_id}/notifications."""

    notifications_enabled: bool
    mention_notifications: bool
