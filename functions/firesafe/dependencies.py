"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from firesafe.config import get_settings
from firesafe.db import DbClient, InMemoryDbClient, PostgresDbClient
from firesafe.events import EventBus, InMemoryEventBus, RedisEventBus
from firesafe.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_event_bus: EventBus | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
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

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url or "",
        )
    return _storage_client


def get_event_bus() -> EventBus:
    """
    Return a singleton event bus. Redis is used when configured so listeners
    in other processes see the same events.
    """
    global _event_bus
    if _event_bus:
        return _event_bus

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _event_bus = RedisEventBus(
            url=settings.redis_url,
            channel_prefix=settings.redis_channel_prefix,
        )
    else:
        _event_bus = InMemoryEventBus()
    return _event_bus
