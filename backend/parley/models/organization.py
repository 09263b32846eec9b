"""
Organization ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from parley.models.invitation import OrgInvitation
    from parley.models.member import OrgMember
    from parley.models.workspace import Workspace


class PlanTier(str, enum.Enum):
    free = "free"
    pro = "pro"
    enterprise = "enterprise"


class SubscriptionStatus(str, enum.Enum):
    active = "active"
    trial = "trial"
    suspended = "suspended"
    cancelled = "cancelled"


class Organization(Base, UUIDMixin, TimestampMixin):
    """Represents a tenant organization. `is_active=False` hides it from all reads."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logo_file_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Plan & billing
    plan: Mapped[PlanTier] = mapped_column(
        Enum(PlanTier, name="plan_tier"), nullable=False, default=PlanTier.free
    )
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status"),
        nullable=False,
        default=SubscriptionStatus.trial,
    )
    trial_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Settings
    allow_public_join: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_domain: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Metadata
    created_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    members: Mapped[list[OrgMember]] = relationship(
        "OrgMember", back_populates="organization", cascade="all, delete-orphan"
    )
    invitations: Mapped[list[OrgInvitation]] = relationship(
        "OrgInvitation", back_populates="organization", cascade="all, delete-orphan"
    )
    workspaces: Mapped[list[Workspace]] = relationship(
        "Workspace", back_populates="organization", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} slug={self.slug!r}>"
