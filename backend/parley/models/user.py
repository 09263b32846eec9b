"""
User, Session and OTP ORM models.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.core.security import utcnow
from parley.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from parley.models.member import OrgMember


class UserStatus(str, enum.Enum):
    """Presence status shown next to a user's name."""

    online = "online"
    offline = "offline"
    away = "away"
    in_meeting = "in_meeting"


class User(Base, UUIDMixin, TimestampMixin):
    """
    Identity keyed by phone number.

    Created on first successful OTP verification, never hard-deleted.
    """

    __tablename__ = "users"

    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True, index=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True, index=True)
    avatar_file_id: Mapped[UUID | None] = mapped_column(nullable=True)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, name="user_status"),
        nullable=False,
        default=UserStatus.offline,
    )

    # Relationships
    org_memberships: Mapped[list[OrgMember]] = relationship(
        "OrgMember", back_populates="user", foreign_keys="OrgMember.user_id"
    )
    sessions: Mapped[list[UserSession]] = relationship(
        "UserSession", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.phone

    def __repr__(self) -> str:
        return f"<User id={self.id} phone={self.phone!r}>"


class UserSession(Base, UUIDMixin):
    """Opaque bearer session token bound to a user."""

    __tablename__ = "sessions"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    user: Mapped[User] = relationship("User", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<UserSession id={self.id} user_id={self.user_id}>"


class OtpCode(Base, UUIDMixin):
    """One-time phone verification code. At most one live row per phone."""

    __tablename__ = "otps"

    phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    code_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<OtpCode id={self.id} phone={self.phone!r} used={self.is_used}>"
