"""
OTP authentication tests.

Request/verify flow, failure ordering, single use, throttling, profile.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from parley.core.config import settings
from parley.core.exceptions import (
    Conflict,
    OtpAlreadyUsed,
    OtpExpired,
    OtpMismatch,
    OtpNotFound,
    RateLimited,
    Unauthenticated,
)
from parley.core.security import generate_otp_code, utcnow
from parley.models import OtpCode, User, UserStatus
from parley.schemas.auth import ProfileUpdateRequest
from parley.services import auth_service as auth_module
from parley.services.auth_service import AuthService

PHONE = "+10000000001"


@pytest.fixture
def service(db, redis) -> AuthService:
    return AuthService(db=db, redis=redis)


@pytest.fixture
def fixed_code(monkeypatch) -> str:
    monkeypatch.setattr(auth_module, "generate_otp_code", lambda: "12345")
    return "12345"


def test_generated_codes_are_five_digits():
    for _ in range(200):
        code = generate_otp_code()
        assert len(code) == 5
        assert code.isdigit()
        assert 10000 <= int(code) <= 99999


async def test_request_stores_hash_not_code(service, db, fixed_code):
    response = await service.request_otp(PHONE)

    assert response.code == fixed_code
    otp = (await db.execute(select(OtpCode))).scalar_one()
    assert otp.code_hash != fixed_code
    assert otp.is_used is False


async def test_request_replaces_previous_code(service, db):
    await service.request_otp(PHONE)
    await service.request_otp(PHONE)

    count = await db.scalar(select(func.count()).select_from(OtpCode).where(OtpCode.phone == PHONE))
    assert count == 1


async def test_request_hides_code_when_exposure_disabled(service, monkeypatch):
    monkeypatch.setattr(settings, "OTP_EXPOSE_CODE", False)
    response = await service.request_otp(PHONE)
    assert response.code is None


async def test_verify_creates_user_and_session(service, db, fixed_code):
    await service.request_otp(PHONE)

    result = await service.verify_otp(PHONE, fixed_code)

    assert result.is_new_user is True
    assert result.user.phone == PHONE
    assert result.user.status == UserStatus.online
    me = await service.get_me(result.session_token)
    assert me.id == result.user.id


async def test_verify_existing_user_is_not_new(service, db, fixed_code):
    await service.request_otp(PHONE)
    first = await service.verify_otp(PHONE, fixed_code)
    await service.request_otp(PHONE)
    second = await service.verify_otp(PHONE, fixed_code)

    assert second.is_new_user is False
    assert second.user.id == first.user.id
    users = await db.scalar(select(func.count()).select_from(User))
    assert users == 1
    # Single session per user: signing in again invalidates the first token
    with pytest.raises(Unauthenticated):
        await service.get_me(first.session_token)


async def test_verify_twice_fails_with_already_used(service, fixed_code):
    await service.request_otp(PHONE)
    await service.verify_otp(PHONE, fixed_code)

    with pytest.raises(OtpAlreadyUsed):
        await service.verify_otp(PHONE, fixed_code)


async def test_verify_without_request_is_not_found(service):
    with pytest.raises(OtpNotFound):
        await service.verify_otp(PHONE, "12345")


async def test_verify_wrong_code_is_mismatch(service, fixed_code):
    await service.request_otp(PHONE)
    with pytest.raises(OtpMismatch):
        await service.verify_otp(PHONE, "54321")


async def test_verify_expired_code_deletes_row(service, db, fixed_code):
    await service.request_otp(PHONE)
    otp = (await db.execute(select(OtpCode))).scalar_one()
    otp.expires_at = utcnow() - timedelta(seconds=1)
    await db.commit()

    with pytest.raises(OtpExpired):
        await service.verify_otp(PHONE, fixed_code)

    remaining = await db.scalar(select(func.count()).select_from(OtpCode))
    assert remaining == 0
    # Expiry is checked before use and before the code itself
    with pytest.raises(OtpNotFound):
        await service.verify_otp(PHONE, fixed_code)


async def test_request_is_throttled_per_phone(service, monkeypatch):
    monkeypatch.setattr(settings, "OTP_REQUESTS_PER_WINDOW", 2)
    await service.request_otp(PHONE)
    await service.request_otp(PHONE)

    with pytest.raises(RateLimited) as exc_info:
        await service.request_otp(PHONE)
    assert "Retry-After" in exc_info.value.headers

    # Other phones are unaffected
    await service.request_otp("+10000000002")


async def test_update_profile_lowercases_and_enforces_unique_email(service, sign_in):
    alice = await sign_in(email="alice@example.com")
    bob = await sign_in()

    updated = await service.update_profile(
        bob.token, ProfileUpdateRequest(first_name="Bob", email="Bob@Example.com")
    )
    assert updated.email == "bob@example.com"
    assert updated.first_name == "Bob"

    with pytest.raises(Conflict) as exc_info:
        await service.update_profile(bob.token, ProfileUpdateRequest(email="ALICE@example.com"))
    assert exc_info.value.detail["code"] == "EMAIL_TAKEN"
    assert alice.user.email == "alice@example.com"


async def test_set_status_and_sign_out(service, sign_in):
    carol = await sign_in()

    updated = await service.set_status(carol.token, UserStatus.away)
    assert updated.status == UserStatus.away

    await service.sign_out(carol.token)
    assert carol.user.status == UserStatus.offline
    with pytest.raises(Unauthenticated):
        await service.get_me(carol.token)
    # Signing out twice is harmless
    await service.sign_out(carol.token)
