"""
Security utilities.

Session/invitation token generation, OTP code generation and hashing,
expiry checks, Redis key helpers.
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime

import bcrypt as _bcrypt

from parley.core.config import settings


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """
    Return True if `expires_at` lies strictly in the past.

    Pure predicate checked on every read path; nothing relies on a sweep.
    """
    if expires_at is None:
        return False
    current = as_utc(now) if now is not None else utcnow()
    return current > as_utc(expires_at)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def create_session_token() -> str:
    """Generate an opaque session token (256 bits of entropy)."""
    return secrets.token_hex(32)


def create_invitation_token() -> str:
    """Generate a URL-safe invitation token (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# OTP codes
# ---------------------------------------------------------------------------

def generate_otp_code() -> str:
    """Uniformly random 5-digit decimal code (10000-99999)."""
    return str(10000 + secrets.randbelow(90000))


def hash_otp_code(code: str) -> str:
    """Hash an OTP code with bcrypt so codes are never stored in clear."""
    salt = _bcrypt.gensalt(rounds=settings.OTP_HASH_ROUNDS)
    return _bcrypt.hashpw(code.encode("utf-8"), salt).decode("utf-8")


def verify_otp_code(code: str, code_hash: str) -> bool:
    """Verify a submitted OTP code against its bcrypt hash."""
    return _bcrypt.checkpw(code.encode("utf-8"), code_hash.encode("utf-8"))


# ---------------------------------------------------------------------------
# Redis key helpers
# ---------------------------------------------------------------------------

def otp_throttle_redis_key(phone: str) -> str:
    """Redis key counting OTP requests for a phone. Format: otp_requests:{phone}"""
    return f"otp_requests:{phone}"


def file_slot_lock_key(context: str, scope_id: str) -> str:
    """Redis lock name for a single-slot file context. Format: file-slot:{context}:{scope_id}"""
    return f"file-slot:{context}:{scope_id}"
