"""
Authentication business logic.

Handles OTP request/verification, profile updates, presence status and
sign-out. All business logic lives here; routers only handle HTTP concerns.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import redis.asyncio as aioredis
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.exceptions import (
    Conflict,
    OtpAlreadyUsed,
    OtpExpired,
    OtpMismatch,
    OtpNotFound,
    RateLimited,
)
from parley.core.security import (
    generate_otp_code,
    hash_otp_code,
    is_expired,
    otp_throttle_redis_key,
    utcnow,
    verify_otp_code,
)
from parley.models.user import OtpCode, User, UserStatus
from parley.schemas.auth import (
    AuthResponse,
    OtpRequestResponse,
    ProfileUpdateRequest,
    UserResponse,
)
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)


def _mask_phone(phone: str) -> str:
    return f"***{phone[-4:]}"


class AuthService:
    """Handles all authentication operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.sessions = SessionStore(db)

    # -----------------------------------------------------------------------
    # Request OTP
    # -----------------------------------------------------------------------

    async def request_otp(self, phone: str) -> OtpRequestResponse:
        """
        Issue a fresh 5-digit code for `phone`.

        - Throttles requests per phone (Redis counter)
        - Replaces any previous code for the phone
        - Stores only the bcrypt hash of the code

        The code is returned in the response only when OTP_EXPOSE_CODE is on;
        otherwise delivery belongs to an out-of-band channel.
        """
        await self._check_request_throttle(phone)

        await self.db.execute(delete(OtpCode).where(OtpCode.phone == phone))

        code = generate_otp_code()
        otp = OtpCode(
            phone=phone,
            code_hash=hash_otp_code(code),
            expires_at=utcnow() + timedelta(minutes=settings.OTP_TTL_MINUTES),
            is_used=False,
        )
        self.db.add(otp)
        await self.db.flush()

        logger.info("OTP issued: phone=%s", _mask_phone(phone))
        return OtpRequestResponse(
            phone=phone,
            expires_at=otp.expires_at,
            code=code if settings.OTP_EXPOSE_CODE else None,
        )

    async def _check_request_throttle(self, phone: str) -> None:
        key = otp_throttle_redis_key(phone)
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, settings.OTP_REQUEST_WINDOW_SECONDS)
        if count > settings.OTP_REQUESTS_PER_WINDOW:
            ttl = await self.redis.ttl(key)
            raise RateLimited(
                "Too many OTP requests for this phone number",
                headers={"Retry-After": str(max(ttl, 1))},
            )

    # -----------------------------------------------------------------------
    # Verify OTP
    # -----------------------------------------------------------------------

    async def verify_otp(self, phone: str, code: str) -> AuthResponse:
        """
        Check a code and sign the user in.

        Failure order: not found, expired (row deleted), already used, mismatch.
        On success the code is consumed, the user is created or marked
        online, and a new session replaces any older one.
        """
        result = await self.db.execute(
            select(OtpCode)
            .where(OtpCode.phone == phone)
            .order_by(OtpCode.created_at.desc())
            .limit(1)
        )
        otp = result.scalar_one_or_none()

        if otp is None:
            raise OtpNotFound()

        if is_expired(otp.expires_at):
            await self.db.delete(otp)
            await self.db.commit()
            raise OtpExpired()

        if otp.is_used:
            raise OtpAlreadyUsed()

        if not verify_otp_code(code, otp.code_hash):
            raise OtpMismatch()

        otp.is_used = True

        user_result = await self.db.execute(select(User).where(User.phone == phone))
        user = user_result.scalar_one_or_none()
        is_new_user = user is None

        if user is None:
            user = User(phone=phone, status=UserStatus.online)
            self.db.add(user)
            await self.db.flush()
            logger.info("User created: user_id=%s", user.id)
        else:
            user.status = UserStatus.online

        session = await self.sessions.issue(user.id)
        await self.db.flush()

        logger.info("OTP verified: user_id=%s", user.id)
        return AuthResponse(
            user=UserResponse.model_validate(user),
            session_token=session.token,
            expires_at=session.expires_at,
            is_new_user=is_new_user,
        )

    # -----------------------------------------------------------------------
    # Me
    # -----------------------------------------------------------------------

    async def get_me(self, token: str) -> UserResponse:
        user = await self.sessions.require(token)
        return UserResponse.model_validate(user)

    async def update_profile(self, token: str, data: ProfileUpdateRequest) -> UserResponse:
        """Update name and/or email. Emails are lowercased and unique across users."""
        user = await self.sessions.require(token)

        if data.email is not None:
            email = str(data.email).lower()
            existing = await self.db.execute(
                select(User).where(User.email == email, User.id != user.id)
            )
            if existing.scalar_one_or_none() is not None:
                raise Conflict("Email is already in use", code="EMAIL_TAKEN")
            user.email = email

        if data.first_name is not None:
            user.first_name = data.first_name
        if data.last_name is not None:
            user.last_name = data.last_name

        await self.db.flush()
        return UserResponse.model_validate(user)

    async def set_status(self, token: str, status: UserStatus) -> UserResponse:
        user = await self.sessions.require(token)
        user.status = status
        await self.db.flush()
        return UserResponse.model_validate(user)

    # -----------------------------------------------------------------------
    # Sign out
    # -----------------------------------------------------------------------

    async def sign_out(self, token: str) -> None:
        """Revoke the session. Idempotent."""
        await self.sessions.revoke(token)
