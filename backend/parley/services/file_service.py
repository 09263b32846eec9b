"""
File metadata registry.

Two-step upload: the caller asks for an upload URL, sends the blob to the
blob store, then registers the metadata. Both steps authorize
independently. Single-slot contexts (profile picture, logos) replace the
previous file under a Redis lock keyed by the slot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.config import settings
from parley.core.exceptions import (
    FileTooLarge,
    FileTypeNotAllowed,
    NotFound,
    Unauthorized,
    ValidationFailed,
)
from parley.core.security import file_slot_lock_key, utcnow
from parley.core.storage import BlobStore
from parley.models.file import AccessLevel, File, FileCategory, FileContext
from parley.models.message import Message
from parley.models.organization import Organization
from parley.models.user import User
from parley.models.workspace import Workspace
from parley.schemas.file import (
    FileListResponse,
    FileMetadataRequest,
    FileResponse,
    FileWithUrlResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from parley.services.permissions import AccessControl, OrgCapability
from parley.services.session_service import SessionStore

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass(frozen=True)
class FileRule:
    max_size: int
    allowed_types: tuple[str, ...] = ()


FILE_RULES: dict[FileContext, FileRule] = {
    FileContext.profile_picture: FileRule(
        max_size=5 * MB,
        allowed_types=("image/jpeg", "image/png", "image/webp", "image/gif"),
    ),
    FileContext.workspace_logo: FileRule(
        max_size=2 * MB,
        allowed_types=("image/jpeg", "image/png", "image/webp"),
    ),
    FileContext.organization_logo: FileRule(
        max_size=2 * MB,
        allowed_types=("image/jpeg", "image/png", "image/webp"),
    ),
    # Empty allow-list: any type
    FileContext.chat_attachment: FileRule(max_size=100 * MB),
    FileContext.document: FileRule(
        max_size=50 * MB,
        allowed_types=(
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "text/plain",
            "text/csv",
            "image/jpeg",
            "image/png",
        ),
    ),
}

SINGLE_SLOT_CONTEXTS = frozenset(
    {FileContext.profile_picture, FileContext.workspace_logo, FileContext.organization_logo}
)


def categorize_file_type(file_type: str) -> FileCategory:
    """Derive the display category from a MIME type."""
    if file_type.startswith("image/"):
        return FileCategory.image
    if file_type.startswith("video/"):
        return FileCategory.video
    if file_type.startswith("audio/"):
        return FileCategory.audio
    if any(marker in file_type for marker in ("pdf", "document", "sheet", "text")):
        return FileCategory.document
    return FileCategory.other


def validate_file(context: FileContext, file_type: str, file_size: int) -> None:
    rule = FILE_RULES[context]
    if file_size > rule.max_size:
        raise FileTooLarge(f"File exceeds the {rule.max_size // MB}MB limit for {context.value}")
    if rule.allowed_types and file_type not in rule.allowed_types:
        raise FileTypeNotAllowed(f"File type {file_type} is not allowed for {context.value}")


def resolve_access_level(
    context: FileContext, workspace_id: UUID | None, is_private: bool = False
) -> AccessLevel:
    if context == FileContext.workspace_logo:
        return AccessLevel.workspace
    if context in (FileContext.profile_picture, FileContext.organization_logo):
        return AccessLevel.organization
    if is_private:
        return AccessLevel.private
    return AccessLevel.workspace if workspace_id is not None else AccessLevel.organization


class FileService:
    """Handles upload authorization, metadata storage and file access."""

    def __init__(self, db: AsyncSession, redis: aioredis.Redis, blob_store: BlobStore) -> None:
        self.db = db
        self.redis = redis
        self.blob_store = blob_store
        self.sessions = SessionStore(db)
        self.access = AccessControl(db)

    # -----------------------------------------------------------------------
    # Authorization
    # -----------------------------------------------------------------------

    async def _authorize_upload(
        self, user_id: UUID, context: FileContext, org_id: UUID, workspace_id: UUID | None
    ) -> Workspace | None:
        """Check the caller may write into this (context, scope). Returns the workspace, if any."""
        await self.access.require_org_member(user_id, org_id)

        if context == FileContext.organization_logo:
            await self.access.require_org_capability(user_id, org_id, OrgCapability.is_admin)

        if workspace_id is None:
            return None

        if context == FileContext.workspace_logo:
            workspace, _ = await self.access.require_workspace_admin(user_id, workspace_id)
        else:
            workspace, _ = await self.access.require_workspace_member(user_id, workspace_id)

        if workspace.org_id != org_id:
            raise ValidationFailed(
                "Workspace does not belong to this organization", code="WORKSPACE_ORG_MISMATCH"
            )
        if not workspace.allow_file_uploads and context != FileContext.workspace_logo:
            raise ValidationFailed(
                "File uploads are disabled in this workspace", code="UPLOADS_DISABLED"
            )
        return workspace

    async def _can_access(self, user_id: UUID, file: File) -> bool:
        """Re-derived on every call from the file's access level."""
        if file.access_level == AccessLevel.organization:
            membership = await self.access.get_org_membership(user_id, file.org_id)
            return membership is not None and membership.is_active

        if file.access_level == AccessLevel.workspace:
            if file.workspace_id is None:
                return False
            return await self.access.is_workspace_member(user_id, file.workspace_id)

        if file.uploaded_by == user_id:
            return True
        return await self.access.has_org_capability(user_id, file.org_id, OrgCapability.is_admin)

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    async def generate_upload_url(self, token: str, data: UploadUrlRequest) -> UploadUrlResponse:
        """Authorize and validate an upload, then hand out a blob store URL."""
        user = await self.sessions.require(token)
        context = FileContext(data.context)
        await self._authorize_upload(user.id, context, data.org_id, data.workspace_id)
        validate_file(context, data.file_type, data.file_size)

        target = await self.blob_store.generate_upload_url()
        return UploadUrlResponse(upload_url=target.upload_url, storage_id=target.storage_id)

    def _slot_scope(self, context: FileContext, user_id: UUID, data: FileMetadataRequest):
        """Filter clause and lock scope id for a single-slot context."""
        if context == FileContext.profile_picture:
            return (File.org_id == data.org_id, File.uploaded_by == user_id), f"{data.org_id}:{user_id}"
        if context == FileContext.workspace_logo:
            return (File.workspace_id == data.workspace_id,), str(data.workspace_id)
        return (File.org_id == data.org_id,), str(data.org_id)

    async def store_metadata(self, token: str, data: FileMetadataRequest) -> FileResponse:
        """
        Register an uploaded blob.

        Re-authorizes from scratch. For single-slot contexts the previous
        row and its blob are removed before the new row is inserted, all
        under the slot's lock.
        """
        user = await self.sessions.require(token)
        context = FileContext(data.context)
        await self._authorize_upload(user.id, context, data.org_id, data.workspace_id)
        validate_file(context, data.file_type, data.file_size)

        if data.message_id is not None:
            message = await self.db.get(Message, data.message_id)
            if message is None or message.org_id != data.org_id:
                raise ValidationFailed("Message not found", code="INVALID_MESSAGE")

        if context not in SINGLE_SLOT_CONTEXTS:
            file = await self._insert(user.id, context, data)
            return FileResponse.model_validate(file)

        filters, scope_id = self._slot_scope(context, user.id, data)
        async with self.redis.lock(
            file_slot_lock_key(context.value, scope_id),
            timeout=settings.FILE_SLOT_LOCK_TIMEOUT_SECONDS,
        ):
            result = await self.db.execute(
                select(File).where(File.context == context, File.is_deleted.is_(False), *filters)
            )
            for previous in result.scalars().all():
                await self.blob_store.delete(previous.storage_id)
                await self.db.delete(previous)
                logger.info(
                    "File slot replaced: context=%s scope=%s old_file_id=%s",
                    context.value, scope_id, previous.id,
                )
            await self.db.flush()

            file = await self._insert(user.id, context, data)
            await self._link_slot_owner(user, context, data, file)
            # Release the lock only once the replacement is durable
            await self.db.commit()

        return FileResponse.model_validate(file)

    async def _insert(self, user_id: UUID, context: FileContext, data: FileMetadataRequest) -> File:
        file = File(
            storage_id=data.storage_id,
            org_id=data.org_id,
            workspace_id=data.workspace_id,
            context=context,
            file_name=data.file_name,
            file_type=data.file_type,
            file_size=data.file_size,
            uploaded_by=user_id,
            message_id=data.message_id,
            category=categorize_file_type(data.file_type),
            access_level=resolve_access_level(
                context, data.workspace_id, getattr(data, "is_private", False)
            ),
            description=data.description,
        )
        self.db.add(file)
        await self.db.flush()
        logger.info(
            "File stored: file_id=%s context=%s org_id=%s by=%s",
            file.id, context.value, data.org_id, user_id,
        )
        return file

    async def _link_slot_owner(
        self, user: User, context: FileContext, data: FileMetadataRequest, file: File
    ) -> None:
        if context == FileContext.profile_picture:
            user.avatar_file_id = file.id
        elif context == FileContext.workspace_logo:
            workspace = await self.db.get(Workspace, data.workspace_id)
            workspace.logo_file_id = file.id
        else:
            org = await self.db.get(Organization, data.org_id)
            org.logo_file_id = file.id
        await self.db.flush()

    async def _unlink_slot_owner(self, file: File) -> None:
        """Clear an avatar or logo pointer that still references a deleted file."""
        if file.context == FileContext.profile_picture:
            owner = await self.db.get(User, file.uploaded_by)
        elif file.context == FileContext.workspace_logo:
            owner = await self.db.get(Workspace, file.workspace_id)
        elif file.context == FileContext.organization_logo:
            owner = await self.db.get(Organization, file.org_id)
        else:
            return

        attr = "avatar_file_id" if file.context == FileContext.profile_picture else "logo_file_id"
        if owner is not None and getattr(owner, attr) == file.id:
            setattr(owner, attr, None)

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def _get_file(self, file_id: UUID) -> File:
        file = await self.db.get(File, file_id)
        if file is None or file.is_deleted:
            raise NotFound("File not found", code="FILE_NOT_FOUND")
        # Files of a deleted organization disappear with it
        org = await self.db.get(Organization, file.org_id)
        if org is None or not org.is_active:
            raise NotFound("File not found", code="FILE_NOT_FOUND")
        return file

    async def get_file_url(self, token: str, file_id: UUID) -> FileWithUrlResponse:
        user = await self.sessions.require(token)
        file = await self._get_file(file_id)

        if not await self._can_access(user.id, file):
            logger.debug("File access denied: file_id=%s user_id=%s", file.id, user.id)
            raise Unauthorized("You do not have access to this file", code="FILE_ACCESS_DENIED")

        return FileWithUrlResponse(
            **FileResponse.model_validate(file).model_dump(),
            url=await self.blob_store.get_url(file.storage_id),
        )

    async def list_files(
        self,
        token: str,
        org_id: UUID,
        workspace_id: UUID | None = None,
        context: FileContext | None = None,
    ) -> FileListResponse:
        """Non-deleted files of an organization the caller can access, newest first."""
        user = await self.sessions.require(token)
        await self.access.require_org_member(user.id, org_id)

        query = select(File).where(File.org_id == org_id, File.is_deleted.is_(False))
        if workspace_id is not None:
            query = query.where(File.workspace_id == workspace_id)
        if context is not None:
            query = query.where(File.context == context)
        result = await self.db.execute(query.order_by(File.created_at.desc()))

        uploader_names: dict[UUID, str | None] = {}
        files: list[FileWithUrlResponse] = []
        for file in result.scalars().all():
            if not await self._can_access(user.id, file):
                continue
            if file.uploaded_by not in uploader_names:
                uploader = await self.db.get(User, file.uploaded_by)
                uploader_names[file.uploaded_by] = uploader.display_name if uploader else None
            files.append(
                FileWithUrlResponse(
                    **FileResponse.model_validate(file).model_dump(),
                    url=await self.blob_store.get_url(file.storage_id),
                    uploader_name=uploader_names[file.uploaded_by],
                )
            )

        return FileListResponse(files=files, total=len(files))

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    async def delete_file(self, token: str, file_id: UUID) -> None:
        """Soft-delete the row, hard-delete the blob. Uploader or org admin."""
        user = await self.sessions.require(token)
        file = await self._get_file(file_id)

        if file.uploaded_by != user.id and not await self.access.has_org_capability(
            user.id, file.org_id, OrgCapability.is_admin
        ):
            raise Unauthorized("You can only delete your own files", code="NOT_UPLOADER")

        await self.blob_store.delete(file.storage_id)
        file.is_deleted = True
        file.deleted_at = utcnow()
        file.deleted_by = user.id
        await self._unlink_slot_owner(file)
        await self.db.flush()
        logger.info("File deleted: file_id=%s by=%s", file.id, user.id)
