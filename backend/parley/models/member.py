"""
OrgMember ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.core.security import utcnow
from parley.models.base import Base, UUIDMixin

if TYPE_CHECKING:
    from parley.models.organization import Organization
    from parley.models.user import User


class OrgRole(str, enum.Enum):
    """Organization member role enumeration."""

    owner = "owner"
    admin = "admin"
    member = "member"
    guest = "guest"


class MemberStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"
    pending_invitation = "pending_invitation"


class OrgMember(Base, UUIDMixin):
    """
    Join table linking users to organizations with a role.

    The three capability flags are additive grants on top of what the
    role already implies.
    """

    __tablename__ = "org_members"
    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_members_org_user"),
    )

    org_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[OrgRole] = mapped_column(
        Enum(OrgRole, name="org_role"), nullable=False
    )
    can_create_workspaces: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_invite_members: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_manage_billing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, name="member_status"),
        nullable=False,
        default=MemberStatus.active,
    )
    invited_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    invite_accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="members"
    )
    user: Mapped[User] = relationship(
        "User", back_populates="org_memberships", foreign_keys=[user_id]
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.active

    def __repr__(self) -> str:
        return f"<OrgMember org_id={self.org_id} user_id={self.user_id} role={self.role}>"
