"""
Workspace and WorkspaceMember ORM models.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.core.security import utcnow
from parley.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from parley.models.organization import Organization
    from parley.models.user import User


class WorkspaceType(str, enum.Enum):
    public = "public"
    private = "private"
    archived = "archived"


class WorkspacePurpose(str, enum.Enum):
    general = "general"
    project = "project"
    department = "department"
    client = "client"
    announcement = "announcement"


class WorkspaceRole(str, enum.Enum):
    admin = "admin"
    member = "member"
    viewer = "viewer"


class Workspace(Base, UUIDMixin, TimestampMixin):
    """Channel-like subdivision of an organization; the scope for messages."""

    __tablename__ = "workspaces"
    __table_args__ = (
        UniqueConstraint("org_id", "name", name="uq_workspaces_org_name"),
    )

    org_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[WorkspaceType] = mapped_column(
        Enum(WorkspaceType, name="workspace_type"),
        nullable=False,
        default=WorkspaceType.public,
    )
    purpose: Mapped[WorkspacePurpose | None] = mapped_column(
        Enum(WorkspacePurpose, name="workspace_purpose"), nullable=True
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    logo_file_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Settings
    allow_threads: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_file_uploads: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    retention_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Relationships
    organization: Mapped[Organization] = relationship(
        "Organization", back_populates="workspaces"
    )
    members: Mapped[list[WorkspaceMember]] = relationship(
        "WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Workspace id={self.id} name={self.name!r} org_id={self.org_id}>"


class WorkspaceMember(Base, UUIDMixin):
    """Join table granting a user access to a workspace."""

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )

    workspace_id: Mapped[UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Denormalized for the (org, user) cascade on org member removal
    org_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[WorkspaceRole] = mapped_column(
        Enum(WorkspaceRole, name="workspace_role"), nullable=False
    )
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mention_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    added_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    workspace: Mapped[Workspace] = relationship("Workspace", back_populates="members")
    user: Mapped[User] = relationship("User", foreign_keys=[user_id])

    def __repr__(self) -> str:
        return (
            f"<WorkspaceMember workspace_id={self.workspace_id} "
            f"user_id={self.user_id} role={self.role}>"
        )
