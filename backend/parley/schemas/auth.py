"""
Authentication schemas.

Request/response models for OTP sign-in, profile and session endpoints.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from parley.models.user import UserStatus

PHONE_PATTERN = r"^\+[1-9]\d{6,14}$"


# ---------------------------------------------------------------------------
# OTP
# ---------------------------------------------------------------------------

class OtpRequest(BaseModel):
    """Request body for POST /auth/otp/request."""

    phone: str = Field(pattern=PHONE_PATTERN, description="E.164 phone number")


class OtpRequestResponse(BaseModel):
    """
    Response for OTP request.

    `code` is only populated when in-band delivery is enabled (development).
    """

    phone: str
    expires_at: datetime
    code: str | None = None


class OtpVerifyRequest(BaseModel):
    """Request body for POST /auth/otp/verify."""

    phone: str = Field(pattern=PHONE_PATTERN)
    code: str = Field(pattern=r"^\d{5}$")


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    """Public view of a user."""

    id: UUID
    phone: str
    first_name: str | None
    last_name: str | None
    email: str | None
    avatar_file_id: UUID | None
    status: UserStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSnapshot(BaseModel):
    """Displayable author/member profile fields, read at query time."""

    id: UUID
    first_name: str | None
    last_name: str | None
    display_name: str
    avatar_file_id: UUID | None
    status: UserStatus

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Response for successful OTP verification."""

    user: UserResponse
    session_token: str
    expires_at: datetime
    is_new_user: bool


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /auth/me."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class StatusUpdateRequest(BaseModel):
    """Request body for PUT /auth/me/status."""

    status: UserStatus
