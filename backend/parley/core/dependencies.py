"""
FastAPI dependency injection functions.

Provides Redis connections, the blob store and session token extraction.
Authentication itself happens inside each service operation, which takes
the extracted token as an explicit argument.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from parley.core.config import settings
from parley.core.storage import BlobStore, blob_store

# ---------------------------------------------------------------------------
# HTTP Bearer scheme (auto_error=False so a cookie can be used instead)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)

# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """
    Return a shared async Redis client.

    Uses a module-level pool so connections are reused across requests.
    """
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            str(settings.REDIS_URL),
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_pool


# ---------------------------------------------------------------------------
# Blob store
# ---------------------------------------------------------------------------

def get_blob_store() -> BlobStore:
    return blob_store


# ---------------------------------------------------------------------------
# Session token
# ---------------------------------------------------------------------------

async def get_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """
    Extract the raw session token from the Bearer header or the session cookie.

    Returns an empty string when neither is present; the service layer
    turns that into Unauthenticated.
    """
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME, "")
