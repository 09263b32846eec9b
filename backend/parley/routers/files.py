"""
File endpoints.

Upload URL issuance, metadata registration, download URLs, listing and
deletion.
"""

from __future__ import annotations

from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from parley.core.database import get_db
from parley.core.dependencies import get_blob_store, get_redis, get_session_token
from parley.core.storage import BlobStore
from parley.models.file import FileContext
from parley.schemas.file import (
    FileListResponse,
    FileMetadataRequest,
    FileResponse,
    FileWithUrlResponse,
    UploadUrlRequest,
    UploadUrlResponse,
)
from parley.services.file_service import FileService

router = APIRouter()


def get_file_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    blob_store: BlobStore = Depends(get_blob_store),
) -> FileService:
    """Dependency that constructs FileService."""
    return FileService(db=db, redis=redis, blob_store=blob_store)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post(
    "/files/upload-url",
    response_model=UploadUrlResponse,
    summary="Get an upload URL",
)
async def generate_upload_url(
    data: UploadUrlRequest,
    token: str = Depends(get_session_token),
    service: FileService = Depends(get_file_service),
) -> UploadUrlResponse:
    """
    Validate an upload and return where to send the blob.

    Size and type limits depend on the upload context.
    """
    return await service.generate_upload_url(token, data)


@router.post(
    "/files",
    response_model=FileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an uploaded file",
)
async def store_metadata(
    data: FileMetadataRequest,
    token: str = Depends(get_session_token),
    service: FileService = Depends(get_file_service),
) -> FileResponse:
    """
    Store metadata for a blob that was uploaded to the returned URL.

    Profile pictures and logos replace the previous file in the same slot.
    """
    return await service.store_metadata(token, data)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

@router.get(
    "/files",
    response_model=FileListResponse,
    summary="List files",
)
async def list_files(
    org_id: UUID,
    workspace_id: UUID | None = Query(default=None),
    context: FileContext | None = Query(default=None),
    token: str = Depends(get_session_token),
    service: FileService = Depends(get_file_service),
) -> FileListResponse:
    """Files of an organization the caller can access, newest first."""
    return await service.list_files(token, org_id, workspace_id, context)


@router.get(
    "/files/{file_id}",
    response_model=FileWithUrlResponse,
    summary="Get a file with its download URL",
)
async def get_file_url(
    file_id: UUID,
    token: str = Depends(get_session_token),
    service: FileService = Depends(get_file_service),
) -> FileWithUrlResponse:
    return await service.get_file_url(token, file_id)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@router.delete(
    "/files/{file_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete a file",
)
async def delete_file(
    file_id: UUID,
    token: str = Depends(get_session_token),
    service: FileService = Depends(get_file_service),
) -> dict:
    """Uploader or organization admin. The blob is removed permanently."""
    await service.delete_file(token, file_id)
    return {}
