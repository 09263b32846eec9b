"""
Message schemas.

Request/response models for messages, reactions and read receipts.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from parley.core.config import settings
from parley.models.message import MessageType
from parley.schemas.auth import UserSnapshot


# ---------------------------------------------------------------------------
# Send / edit
# ---------------------------------------------------------------------------

class MessageSendRequest(BaseModel):
    """Request body for POST /workspaces/{workspace_id}/messages."""

    text: str
    parent_message_id: UUID | None = None
    attachment_id: UUID | None = None
    mentions: list[UUID] | None = None
    message_type: MessageType = MessageType.message
    is_important: bool = False

    @field_validator("text")
    @classmethod
    def text_must_be_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        if len(v) > settings.MESSAGE_MAX_LENGTH:
            raise ValueError(f"Message cannot exceed {settings.MESSAGE_MAX_LENGTH} characters")
        return v

    @field_validator("mentions")
    @classmethod
    def dedupe_mentions(cls, v: list[UUID] | None) -> list[UUID] | None:
        if v is None:
            return v
        return list(dict.fromkeys(v))


class MessageEditRequest(BaseModel):
    """Request body for PATCH /messages/{message_id}."""

    text: str

    @field_validator("text")
    @classmethod
    def text_must_be_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        if len(v) > settings.MESSAGE_MAX_LENGTH:
            raise ValueError(f"Message cannot exceed {settings.MESSAGE_MAX_LENGTH} characters")
        return v


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ReactionSummary(BaseModel):
    """Reactions grouped by emoji."""

    emoji: str
    count: int
    user_ids: list[UUID]


class MessageResponse(BaseModel):
    id: UUID
    org_id: UUID
    workspace_id: UUID
    author_id: UUID
    text: str
    message_type: MessageType
    parent_message_id: UUID | None
    thread_count: int
    mentions: list[UUID] | None
    attachment_id: UUID | None
    is_important: bool
    is_pinned: bool
    is_edited: bool
    edited_at: datetime | None
    is_deleted: bool
    deleted_at: datetime | None
    deleted_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageWithAuthorResponse(MessageResponse):
    """Message enriched at read time with the author's current profile and reactions."""

    author: UserSnapshot | None
    reactions: list[ReactionSummary] = Field(default_factory=list)


class MessageListResponse(BaseModel):
    messages: list[MessageWithAuthorResponse]
    total: int


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1, max_length=64)


class ReactionResponse(BaseModel):
    id: UUID
    message_id: UUID
    user_id: UUID
    emoji: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ReactionListResponse(BaseModel):
    reactions: list[ReactionResponse]
    total: int


class MarkReadResponse(BaseModel):
    marked: int


class UnreadCountResponse(BaseModel):
    workspace_id: UUID
    unread: int
