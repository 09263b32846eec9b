"""
Messaging business logic.

Send/edit/delete/pin messages, reactions and read receipts, all scoped to
a workspace. Deletion is soft; reads filter `is_deleted` while replies,
reactions and receipts of a deleted message stay queryable.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.exceptions import (
    DuplicateReaction,
    EditWindowExpired,
    InvalidParent,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from parley.core.security import as_utc, utcnow
from parley.models.file import File
from parley.models.message import Message, MessageRead, Reaction
from parley.models.user import User
from parley.schemas.auth import UserSnapshot
from parley.schemas.message import (
    MarkReadResponse,
    MessageEditRequest,
    MessageListResponse,
    MessageResponse,
    MessageSendRequest,
    MessageWithAuthorResponse,
    ReactionListResponse,
    ReactionResponse,
    ReactionSummary,
    UnreadCountResponse,
)
from parley.services.permissions import AccessControl
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)


def within_edit_window(created_at: datetime, now: datetime | None = None) -> bool:
    """True while `now - created_at` is at most MESSAGE_EDIT_WINDOW_MINUTES."""
    current = as_utc(now) if now is not None else utcnow()
    return current - as_utc(created_at) <= timedelta(minutes=settings.MESSAGE_EDIT_WINDOW_MINUTES)


class MessageService:
    """Handles all messaging operations."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis) -> None:
        self.db = db
        self.redis = redis
        self.sessions = SessionStore(db)
        self.access = AccessControl(db)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _get_message(self, message_id: UUID, include_deleted: bool = False) -> Message:
        message = await self.db.get(Message, message_id)
        if message is None or (message.is_deleted and not include_deleted):
            raise NotFound("Message not found", code="MESSAGE_NOT_FOUND")
        return message

    async def _enrich(self, messages: list[Message]) -> list[MessageWithAuthorResponse]:
        """Attach the author's current profile and grouped reaction counts."""
        if not messages:
            return []

        author_ids = {message.author_id for message in messages}
        authors_result = await self.db.execute(select(User).where(User.id.in_(author_ids)))
        authors = {user.id: UserSnapshot.model_validate(user) for user in authors_result.scalars()}

        reactions_result = await self.db.execute(
            select(Reaction)
            .where(Reaction.message_id.in_([message.id for message in messages]))
            .order_by(Reaction.created_at)
        )
        grouped: dict[UUID, dict[str, list[UUID]]] = defaultdict(lambda: defaultdict(list))
        for reaction in reactions_result.scalars():
            grouped[reaction.message_id][reaction.emoji].append(reaction.user_id)

        return [
            MessageWithAuthorResponse(
                **MessageResponse.model_validate(message).model_dump(),
                author=authors.get(message.author_id),
                reactions=[
                    ReactionSummary(emoji=emoji, count=len(user_ids), user_ids=user_ids)
                    for emoji, user_ids in grouped[message.id].items()
                ],
            )
            for message in messages
        ]

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def get_messages(self, token: str, workspace_id: UUID) -> MessageListResponse:
        """Non-deleted messages of a workspace, oldest first."""
        user = await self.sessions.require(token)
        await self.access.require_workspace_member(user.id, workspace_id)

        result = await self.db.execute(
            select(Message)
            .where(Message.workspace_id == workspace_id, Message.is_deleted.is_(False))
            .order_by(Message.created_at)
        )
        messages = await self._enrich(list(result.scalars().all()))
        return MessageListResponse(messages=messages, total=len(messages))

    async def get_message(self, token: str, message_id: UUID) -> MessageWithAuthorResponse:
        """Resolve a single message by id, soft-deleted ones included."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id, include_deleted=True)
        await self.access.require_workspace_member(user.id, message.workspace_id)
        return (await self._enrich([message]))[0]

    async def get_thread(self, token: str, parent_id: UUID) -> MessageListResponse:
        """Non-deleted replies to a message, oldest first."""
        user = await self.sessions.require(token)
        parent = await self._get_message(parent_id, include_deleted=True)
        await self.access.require_workspace_member(user.id, parent.workspace_id)

        result = await self.db.execute(
            select(Message)
            .where(Message.parent_message_id == parent.id, Message.is_deleted.is_(False))
            .order_by(Message.created_at)
        )
        messages = await self._enrich(list(result.scalars().all()))
        return MessageListResponse(messages=messages, total=len(messages))

    async def list_pinned(self, token: str, workspace_id: UUID) -> MessageListResponse:
        user = await self.sessions.require(token)
        await self.access.require_workspace_member(user.id, workspace_id)

        result = await self.db.execute(
            select(Message)
            .where(
                Message.workspace_id == workspace_id,
                Message.is_pinned.is_(True),
                Message.is_deleted.is_(False),
            )
            .order_by(Message.created_at)
        )
        messages = await self._enrich(list(result.scalars().all()))
        return MessageListResponse(messages=messages, total=len(messages))

    # -----------------------------------------------------------------------
    # Send
    # -----------------------------------------------------------------------

    async def send_message(
        self, token: str, workspace_id: UUID, data: MessageSendRequest
    ) -> MessageWithAuthorResponse:
        """
        Post a message to a workspace.

        - Requires workspace membership (any role)
        - Archived workspaces accept no new messages
        - A reply's parent must be a live message of the same workspace;
          the parent's thread_count is bumped with a single atomic UPDATE
        - An attachment must be a live file of the same organization and
          gets linked to the new message
        - Every mentioned user must be a member of the workspace
        """
        user = await self.sessions.require(token)
        workspace, _ = await self.access.require_workspace_member(user.id, workspace_id)

        if workspace.is_archived:
            raise ValidationFailed("Workspace is archived", code="WORKSPACE_ARCHIVED")

        parent: Message | None = None
        if data.parent_message_id is not None:
            if not workspace.allow_threads:
                raise ValidationFailed(
                    "Threads are disabled in this workspace", code="THREADS_DISABLED"
                )
            parent = await self.db.get(Message, data.parent_message_id)
            if parent is None or parent.workspace_id != workspace.id or parent.is_deleted:
                raise InvalidParent()

        attachment: File | None = None
        if data.attachment_id is not None:
            attachment = await self.db.get(File, data.attachment_id)
            if attachment is None or attachment.is_deleted or attachment.org_id != workspace.org_id:
                raise ValidationFailed("Attachment not found", code="INVALID_ATTACHMENT")

        for mentioned_id in data.mentions or []:
            if await self.access.get_active_workspace_membership(mentioned_id, workspace) is None:
                raise ValidationFailed(
                    "Mentioned user is not a member of this workspace", code="INVALID_MENTION"
                )

        message = Message(
            org_id=workspace.org_id,
            workspace_id=workspace.id,
            author_id=user.id,
            text=data.text,
            message_type=data.message_type,
            parent_message_id=parent.id if parent is not None else None,
            thread_count=0,
            mentions=[str(user_id) for user_id in data.mentions] if data.mentions else None,
            attachment_id=attachment.id if attachment is not None else None,
            is_important=data.is_important,
        )
        self.db.add(message)
        await self.db.flush()

        if attachment is not None:
            attachment.message_id = message.id

        if parent is not None:
            await self.db.execute(
                update(Message)
                .where(Message.id == parent.id)
                .values(thread_count=Message.thread_count + 1)
                .execution_options(synchronize_session=False)
            )
            await self.db.refresh(parent, attribute_names=["thread_count"])

        await self.db.flush()
        return (await self._enrich([message]))[0]

    # -----------------------------------------------------------------------
    # Edit / Delete
    # -----------------------------------------------------------------------

    async def edit_message(
        self, token: str, message_id: UUID, data: MessageEditRequest
    ) -> MessageWithAuthorResponse:
        """Author only, and only within the edit window."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        if message.author_id != user.id:
            raise Unauthorized("You can only edit your own messages", code="NOT_AUTHOR")

        if not within_edit_window(message.created_at):
            raise EditWindowExpired()

        message.text = data.text
        message.is_edited = True
        message.edited_at = utcnow()
        await self.db.flush()
        return (await self._enrich([message]))[0]

    async def delete_message(self, token: str, message_id: UUID) -> None:
        """Soft delete. Author or workspace admin. Replies and reactions are untouched."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        if message.author_id != user.id and not await self.access.is_workspace_admin(
            user.id, message.workspace_id
        ):
            raise Unauthorized("You can only delete your own messages", code="NOT_AUTHOR")

        message.is_deleted = True
        message.deleted_at = utcnow()
        message.deleted_by = user.id
        await self.db.flush()
        logger.info("Message deleted: message_id=%s by=%s", message.id, user.id)

    # -----------------------------------------------------------------------
    # Pin
    # -----------------------------------------------------------------------

    async def set_pinned(
        self, token: str, message_id: UUID, pinned: bool
    ) -> MessageWithAuthorResponse:
        """Pin or unpin. Workspace admin only."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id)
        await self.access.require_workspace_admin(user.id, message.workspace_id)

        message.is_pinned = pinned
        await self.db.flush()
        return (await self._enrich([message]))[0]

    # -----------------------------------------------------------------------
    # Reactions
    # -----------------------------------------------------------------------

    async def add_reaction(self, token: str, message_id: UUID, emoji: str) -> ReactionResponse:
        """At most one reaction per (message, user, emoji)."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        existing = await self.db.execute(
            select(Reaction).where(
                Reaction.message_id == message.id,
                Reaction.user_id == user.id,
                Reaction.emoji == emoji,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateReaction()

        reaction = Reaction(
            message_id=message.id,
            user_id=user.id,
            org_id=message.org_id,
            emoji=emoji,
        )
        self.db.add(reaction)
        await self.db.flush()
        return ReactionResponse.model_validate(reaction)

    async def remove_reaction(self, token: str, message_id: UUID, emoji: str) -> None:
        user = await self.sessions.require(token)
        message = await self._get_message(message_id, include_deleted=True)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        result = await self.db.execute(
            select(Reaction).where(
                Reaction.message_id == message.id,
                Reaction.user_id == user.id,
                Reaction.emoji == emoji,
            )
        )
        reaction = result.scalar_one_or_none()
        if reaction is None:
            raise NotFound("Reaction not found", code="REACTION_NOT_FOUND")

        await self.db.delete(reaction)
        await self.db.flush()

    async def list_reactions(self, token: str, message_id: UUID) -> ReactionListResponse:
        user = await self.sessions.require(token)
        message = await self._get_message(message_id, include_deleted=True)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        result = await self.db.execute(
            select(Reaction).where(Reaction.message_id == message.id).order_by(Reaction.created_at)
        )
        reactions = [ReactionResponse.model_validate(r) for r in result.scalars().all()]
        return ReactionListResponse(reactions=reactions, total=len(reactions))

    # -----------------------------------------------------------------------
    # Read receipts
    # -----------------------------------------------------------------------

    async def mark_read(self, token: str, message_id: UUID) -> MarkReadResponse:
        """Idempotent: a second call inserts nothing."""
        user = await self.sessions.require(token)
        message = await self._get_message(message_id, include_deleted=True)
        await self.access.require_workspace_member(user.id, message.workspace_id)

        existing = await self.db.execute(
            select(MessageRead.id).where(
                MessageRead.message_id == message.id,
                MessageRead.user_id == user.id,
            )
        )
        if existing.first() is not None:
            return MarkReadResponse(marked=0)

        self.db.add(MessageRead(message_id=message.id, user_id=user.id, org_id=message.org_id))
        await self.db.flush()
        return MarkReadResponse(marked=1)

    def _unread_query(self, user_id: UUID, workspace_id: UUID):
        already_read = select(MessageRead.message_id).where(MessageRead.user_id == user_id)
        return select(Message).where(
            Message.workspace_id == workspace_id,
            Message.is_deleted.is_(False),
            Message.id.not_in(already_read),
        )

    async def mark_workspace_read(self, token: str, workspace_id: UUID) -> MarkReadResponse:
        """Insert a receipt for every live message the caller has not read yet."""
        user = await self.sessions.require(token)
        await self.access.require_workspace_member(user.id, workspace_id)

        result = await self.db.execute(self._unread_query(user.id, workspace_id))
        unread = result.scalars().all()
        now = utcnow()
        for message in unread:
            self.db.add(
                MessageRead(message_id=message.id, user_id=user.id, org_id=message.org_id, read_at=now)
            )
        await self.db.flush()
        return MarkReadResponse(marked=len(unread))

    async def unread_count(self, token: str, workspace_id: UUID) -> UnreadCountResponse:
        """Live messages from other authors without a receipt from the caller."""
        user = await self.sessions.require(token)
        await self.access.require_workspace_member(user.id, workspace_id)

        unread = self._unread_query(user.id, workspace_id).where(Message.author_id != user.id)
        result = await self.db.execute(select(func.count()).select_from(unread.subquery()))
        return UnreadCountResponse(workspace_id=workspace_id, unread=result.scalar_one())
