"""
Authentication endpoints.

OTP request/verify, sign out, me, profile and presence.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.database import get_db
from parley.core.dependencies import get_redis, get_session_token
from parley.schemas.auth import (
    AuthResponse,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    ProfileUpdateRequest,
    StatusUpdateRequest,
    UserResponse,
)
from parley.services.auth_service import AuthService

router = APIRouter()


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> AuthService:
    """Dependency that constructs AuthService."""
    return AuthService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# OTP
# ---------------------------------------------------------------------------

@router.post(
    "/otp/request",
    response_model=OtpRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a one-time code",
)
async def request_otp(
    data: OtpRequest,
    service: AuthService = Depends(get_auth_service),
) -> OtpRequestResponse:
    """
    Issue a 5-digit code for a phone number.

    - Any earlier code for the phone is discarded
    - Throttled per phone number
    - The code is only echoed back outside production
    """
    return await service.request_otp(data.phone)


@router.post(
    "/otp/verify",
    response_model=AuthResponse,
    summary="Verify a one-time code and sign in",
)
async def verify_otp(
    data: OtpVerifyRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """
    Verify the code, create the user on first sign-in, and open a session.

    The session token is returned in the body and set as an HttpOnly cookie.
    Any previous session of the user is invalidated.
    """
    result = await service.verify_otp(data.phone, data.code)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=result.session_token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return result


# ---------------------------------------------------------------------------
# Sign out
# ---------------------------------------------------------------------------

@router.post(
    "/sign-out",
    status_code=status.HTTP_200_OK,
    summary="Sign out and revoke the session",
)
async def sign_out(
    response: Response,
    token: str = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    """Revoke the current session. Safe to call with an already revoked token."""
    await service.sign_out(token)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {}


# ---------------------------------------------------------------------------
# Me
# ---------------------------------------------------------------------------

@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(
    token: str = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    return await service.get_me(token)


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update profile",
)
async def update_profile(
    data: ProfileUpdateRequest,
    token: str = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Update name and e-mail. E-mail addresses are unique across users."""
    return await service.update_profile(token, data)


@router.put(
    "/me/status",
    response_model=UserResponse,
    summary="Set presence status",
)
async def set_status(
    data: StatusUpdateRequest,
    token: str = Depends(get_session_token),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    return await service.set_status(token, data.status)
