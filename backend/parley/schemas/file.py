"""
File schemas.

Upload requests are a tagged union discriminated by `context`, so scope
rules (which contexts take a workspace) are enforced before any service
code runs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field

from parley.models.file import AccessLevel, FileCategory, FileContext


# ---------------------------------------------------------------------------
# Upload URL requests
# ---------------------------------------------------------------------------

class _UploadBase(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str = Field(min_length=1, max_length=255)
    file_size: int = Field(gt=0)
    org_id: UUID


class ProfilePictureUpload(_UploadBase):
    context: Literal["profile_picture"]
    workspace_id: None = None


class OrganizationLogoUpload(_UploadBase):
    context: Literal["organization_logo"]
    workspace_id: None = None


class WorkspaceLogoUpload(_UploadBase):
    context: Literal["workspace_logo"]
    workspace_id: UUID


class ChatAttachmentUpload(_UploadBase):
    context: Literal["chat_attachment"]
    workspace_id: UUID | None = None
    is_private: bool = False


class DocumentUpload(_UploadBase):
    context: Literal["document"]
    workspace_id: UUID | None = None
    is_private: bool = False


UploadUrlRequest = Annotated[
    Union[
        ProfilePictureUpload,
        OrganizationLogoUpload,
        WorkspaceLogoUpload,
        ChatAttachmentUpload,
        DocumentUpload,
    ],
    Field(discriminator="context"),
]


# ---------------------------------------------------------------------------
# Metadata requests (after the blob was uploaded)
# ---------------------------------------------------------------------------

class _StoredFields(BaseModel):
    storage_id: str = Field(min_length=1, max_length=255)
    message_id: UUID | None = None
    description: str | None = Field(default=None, max_length=1000)


class ProfilePictureMetadata(ProfilePictureUpload, _StoredFields):
    pass


class OrganizationLogoMetadata(OrganizationLogoUpload, _StoredFields):
    pass


class WorkspaceLogoMetadata(WorkspaceLogoUpload, _StoredFields):
    pass


class ChatAttachmentMetadata(ChatAttachmentUpload, _StoredFields):
    pass


class DocumentMetadata(DocumentUpload, _StoredFields):
    pass


FileMetadataRequest = Annotated[
    Union[
        ProfilePictureMetadata,
        OrganizationLogoMetadata,
        WorkspaceLogoMetadata,
        ChatAttachmentMetadata,
        DocumentMetadata,
    ],
    Field(discriminator="context"),
]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UploadUrlResponse(BaseModel):
    upload_url: str
    storage_id: str


class FileResponse(BaseModel):
    id: UUID
    storage_id: str
    org_id: UUID
    workspace_id: UUID | None
    context: FileContext
    file_name: str
    file_type: str
    file_size: int
    uploaded_by: UUID
    message_id: UUID | None
    category: FileCategory
    access_level: AccessLevel
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class FileWithUrlResponse(FileResponse):
    url: str | None
    uploader_name: str | None = None


class FileListResponse(BaseModel):
    files: list[FileWithUrlResponse]
    total: int
