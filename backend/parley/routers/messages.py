"""
Messaging endpoints.

Workspace message feeds, threads, pins, reactions and read receipts.
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.database import get_db
from parley.core.dependencies import get_redis, get_session_token
from parley.schemas.message import (
    MarkReadResponse,
    MessageEditRequest,
    MessageListResponse,
    MessageSendRequest,
    MessageWithAuthorResponse,
    ReactionListResponse,
    ReactionRequest,
    ReactionResponse,
    UnreadCountResponse,
)
from parley.services.message_service import MessageService

router = APIRouter()


def get_message_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> MessageService:
    """Dependency that constructs MessageService."""
    return MessageService(db=db, redis=redis)


# ---------------------------------------------------------------------------
# Workspace feed
# ---------------------------------------------------------------------------

@router.get(
    "/workspaces/{workspace_id}/messages",
    response_model=MessageListResponse,
    summary="List workspace messages",
)
async def get_messages(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    """Messages oldest first, deleted ones excluded, with author and reactions."""
    return await service.get_messages(token, workspace_id)


@router.post(
    "/workspaces/{workspace_id}/messages",
    response_model=MessageWithAuthorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    workspace_id: UUID,
    data: MessageSendRequest,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageWithAuthorResponse:
    """
    Post a message, optionally as a thread reply or with an attachment.

    - Requires workspace membership
    - Parent must be a message of the same workspace
    """
    return await service.send_message(token, workspace_id, data)


@router.get(
    "/workspaces/{workspace_id}/messages/pinned",
    response_model=MessageListResponse,
    summary="List pinned messages",
)
async def list_pinned(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    return await service.list_pinned(token, workspace_id)


@router.post(
    "/workspaces/{workspace_id}/messages/read",
    response_model=MarkReadResponse,
    summary="Mark every message in a workspace as read",
)
async def mark_workspace_read(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MarkReadResponse:
    return await service.mark_workspace_read(token, workspace_id)


@router.get(
    "/workspaces/{workspace_id}/messages/unread",
    response_model=UnreadCountResponse,
    summary="Count unread messages",
)
async def unread_count(
    workspace_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> UnreadCountResponse:
    return await service.unread_count(token, workspace_id)


# ---------------------------------------------------------------------------
# Single message
# ---------------------------------------------------------------------------

@router.get(
    "/messages/{message_id}",
    response_model=MessageWithAuthorResponse,
    summary="Get a message",
)
async def get_message(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageWithAuthorResponse:
    """Resolve a message by id. Deleted messages are returned with is_deleted set."""
    return await service.get_message(token, message_id)


@router.get(
    "/messages/{message_id}/thread",
    response_model=MessageListResponse,
    summary="List thread replies",
)
async def get_thread(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    return await service.get_thread(token, message_id)


@router.patch(
    "/messages/{message_id}",
    response_model=MessageWithAuthorResponse,
    summary="Edit a message",
)
async def edit_message(
    message_id: UUID,
    data: MessageEditRequest,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageWithAuthorResponse:
    """
    Edit a message.

    - Author only
    - Only within 15 minutes of sending
    """
    return await service.edit_message(token, message_id, data)


@router.delete(
    "/messages/{message_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete a message",
)
async def delete_message(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> dict:
    """Soft-delete a message. Author or workspace admin."""
    await service.delete_message(token, message_id)
    return {}


@router.post(
    "/messages/{message_id}/pin",
    response_model=MessageWithAuthorResponse,
    summary="Pin a message",
)
async def pin_message(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageWithAuthorResponse:
    """Workspace admin only."""
    return await service.set_pinned(token, message_id, True)


@router.delete(
    "/messages/{message_id}/pin",
    response_model=MessageWithAuthorResponse,
    summary="Unpin a message",
)
async def unpin_message(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MessageWithAuthorResponse:
    """Workspace admin only."""
    return await service.set_pinned(token, message_id, False)


@router.post(
    "/messages/{message_id}/read",
    response_model=MarkReadResponse,
    summary="Mark a message as read",
)
async def mark_read(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> MarkReadResponse:
    return await service.mark_read(token, message_id)


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------

@router.get(
    "/messages/{message_id}/reactions",
    response_model=ReactionListResponse,
    summary="List reactions",
)
async def list_reactions(
    message_id: UUID,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> ReactionListResponse:
    return await service.list_reactions(token, message_id)


@router.post(
    "/messages/{message_id}/reactions",
    response_model=ReactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a reaction",
)
async def add_reaction(
    message_id: UUID,
    data: ReactionRequest,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> ReactionResponse:
    """One reaction per user, message and emoji."""
    return await service.add_reaction(token, message_id, data.emoji)


@router.delete(
    "/messages/{message_id}/reactions/{emoji}",
    status_code=status.HTTP_200_OK,
    summary="Remove a reaction",
)
async def remove_reaction(
    message_id: UUID,
    emoji: str,
    token: str = Depends(get_session_token),
    service: MessageService = Depends(get_message_service),
) -> dict:
    await service.remove_reaction(token, message_id, emoji)
    return {}
