"""
Organization schemas.

Request/response models for organization and member management endpoints.
"""

from __future__ import annotations

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from parley.models.member import MemberStatus, OrgRole
from parley.models.organization import PlanTier, SubscriptionStatus
from parley.schemas.auth import UserSnapshot

SLUG_RE = re.compile(r"^[a-z0-9-]+$")


def _validate_slug(v: str) -> str:
    if not SLUG_RE.match(v):
        raise ValueError("Slug must contain only lowercase letters, numbers and hyphens")
    return v


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationCreateRequest(BaseModel):
    """Request body for POST /organizations."""

    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=3, max_length=50)
    description: str | None = Field(default=None, max_length=1000)
    email_domain: str | None = Field(default=None, max_length=255)
    allow_public_join: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Organization name cannot be blank")
        return v

    @field_validator("slug")
    @classmethod
    def slug_must_be_valid(cls, v: str) -> str:
        return _validate_slug(v)


class OrganizationUpdateRequest(BaseModel):
    """Request body for PATCH /organizations/{org_id}."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    website: str | None = Field(default=None, max_length=255)
    industry: str | None = Field(default=None, max_length=100)
    allow_public_join: bool | None = None
    email_domain: str | None = Field(default=None, max_length=255)


class OrganizationResponse(BaseModel):
    """Organization detail response."""

    id: UUID
    name: str
    slug: str
    description: str | None
    website: str | None
    industry: str | None
    logo_file_id: UUID | None
    plan: PlanTier
    subscription_status: SubscriptionStatus
    trial_ends_at: datetime | None
    max_members: int | None
    allow_public_join: bool
    email_domain: str | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationDetailResponse(OrganizationResponse):
    """Organization with caller context and counts."""

    member_count: int
    workspace_count: int
    my_role: OrgRole
    can_create_workspaces: bool
    can_invite_members: bool
    can_manage_billing: bool


class OrganizationListResponse(BaseModel):
    organizations: list[OrganizationDetailResponse]
    total: int


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    """Single org member with user info and role."""

    id: UUID
    org_id: UUID
    user_id: UUID
    role: OrgRole
    status: MemberStatus
    can_create_workspaces: bool
    can_invite_members: bool
    can_manage_billing: bool
    joined_at: datetime
    profile: UserSnapshot | None = None

    model_config = {"from_attributes": True}


class MembersListResponse(BaseModel):
    """Response for GET /organizations/{org_id}/members."""

    members: list[MemberResponse]
    total: int


class MemberAddRequest(BaseModel):
    """Request body for POST /organizations/{org_id}/members."""

    email: EmailStr
    role: OrgRole = OrgRole.member
    can_create_workspaces: bool = False
    can_invite_members: bool = False

    @field_validator("role")
    @classmethod
    def role_not_owner(cls, v: OrgRole) -> OrgRole:
        if v == OrgRole.owner:
            raise ValueError("Members cannot be added directly as owner")
        return v


class MemberRoleUpdateRequest(BaseModel):
    """Request body for PATCH /organizations/{org_id}/members/{user_id}."""

    role: OrgRole
    can_create_workspaces: bool | None = None
    can_invite_members: bool | None = None
    can_manage_billing: bool | None = None


class MemberStatusUpdateRequest(BaseModel):
    """Request body for PUT /organizations/{org_id}/members/{user_id}/status."""

    status: MemberStatus
