"""
File metadata ORM model.
"""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from parley.core.security import utcnow
from parley.models.base import Base, UUIDMixin


class FileContext(str, enum.Enum):
    profile_picture = "profile_picture"
    workspace_logo = "workspace_logo"
    organization_logo = "organization_logo"
    chat_attachment = "chat_attachment"
    document = "document"


class FileCategory(str, enum.Enum):
    image = "image"
    document = "document"
    video = "video"
    audio = "audio"
    other = "other"


class AccessLevel(str, enum.Enum):
    organization = "organization"
    workspace = "workspace"
    private = "private"


class File(Base, UUIDMixin):
    """Metadata row for an uploaded blob, scoped to an organization and optionally a workspace."""

    __tablename__ = "files"
    __table_args__ = (
        Index("idx_files_org_context", "org_id", "context"),
        Index("idx_files_workspace_context", "workspace_id", "context"),
    )

    storage_id: Mapped[str] = mapped_column(String(255), nullable=False)
    org_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    workspace_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=True, index=True
    )
    context: Mapped[FileContext] = mapped_column(
        Enum(FileContext, name="file_context"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("messages.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category: Mapped[FileCategory] = mapped_column(
        Enum(FileCategory, name="file_category"), nullable=False
    )
    access_level: Mapped[AccessLevel] = mapped_column(
        Enum(AccessLevel, name="access_level"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<File id={self.id} context={self.context} org_id={self.org_id}>"
