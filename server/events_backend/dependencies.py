"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import threading

from fastapi import Depends, Request

from events_backend.config import Settings, get_settings
from events_backend.db import DbClient, InMemoryDbClient, PostgresDbClient
from events_backend.service import EventService
from events_backend.storage import (
    CosStorageClient,
    InMemoryStorageClient,
    LocalStorageClient,
    StorageClient,
)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
# Sync routes run in a threadpool, so first requests can arrive concurrently.
_init_lock = threading.Lock()


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so in-memory state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    with _init_lock:
        if _db_client:
            return _db_client
        settings = get_settings()
        if settings.use_in_memory_backends or not settings.database_url:
            _db_client = InMemoryDbClient()
        else:
            _db_client = PostgresDbClient(settings.database_url)
        return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    with _init_lock:
        if _storage_client:
            return _storage_client
        settings = get_settings()
        if settings.use_in_memory_backends:
            _storage_client = InMemoryStorageClient()
        elif settings.cos_bucket:
            _storage_client = CosStorageClient(
                bucket=settings.cos_bucket,
                region=settings.cos_region or "",
                endpoint=settings.cos_endpoint or "",
                access_key_id=settings.aws_access_key_id or "",
                secret_access_key=settings.aws_secret_access_key or "",
            )
        else:
            _storage_client = LocalStorageClient(upload_dir=settings.upload_dir)
        return _storage_client


def get_event_service(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> EventService:
    return EventService(db, storage)


def get_current_user(
    request: Request, settings: Settings = Depends(get_settings)
) -> str | None:
    """
    Caller id set by the upstream auth middleware. The X-User-Id header is
    consulted only when ``trust_user_id_header`` is enabled. Returns None for
    anonymous callers.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return str(user_id)
    if settings.trust_user_id_header:
        return request.headers.get("X-User-Id") or None
    return None
