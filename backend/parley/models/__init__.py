"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from parley.models.base import Base, TimestampMixin, UUIDMixin
from parley.models.user import OtpCode, User, UserSession, UserStatus
from parley.models.member import MemberStatus, OrgMember, OrgRole
from parley.models.organization import Organization, PlanTier, SubscriptionStatus
from parley.models.workspace import (
    Workspace,
    WorkspaceMember,
    WorkspacePurpose,
    WorkspaceRole,
    WorkspaceType,
)
from parley.models.invitation import (
    InvitationStatus,
    OrgInvitation,
    WorkspaceInvitation,
    WorkspaceInvitationStatus,
)
from parley.models.message import Message, MessageRead, MessageType, Reaction
from parley.models.file import AccessLevel, File, FileCategory, FileContext

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserSession",
    "UserStatus",
    "OtpCode",
    "Organization",
    "PlanTier",
    "SubscriptionStatus",
    "OrgMember",
    "OrgRole",
    "MemberStatus",
    "Workspace",
    "WorkspaceMember",
    "WorkspacePurpose",
    "WorkspaceRole",
    "WorkspaceType",
    "OrgInvitation",
    "InvitationStatus",
    "WorkspaceInvitation",
    "WorkspaceInvitationStatus",
    "Message",
    "MessageRead",
    "MessageType",
    "Reaction",
    "File",
    "FileCategory",
    "FileContext",
    "AccessLevel",
]
