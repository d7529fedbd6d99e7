"""
OTP Record Stores
=================
Record store contract plus in-memory, Redis and SQL backends.
"""

from .base import RecordStore, STATUS_EXTRA_FIELDS
from .in_memory import InMemoryRecordStore
from .redis_store import RedisRecordStore
from .sql_store import SQLRecordStore, OTPRecordRow
from .database import Base, create_async_engine, init_schema


async def create_store(url: str) -> RecordStore:
    """
    Build a record store from a URL.

    ``memory://`` gives the in-memory store, ``redis://`` / ``rediss://``
    the Redis store, and any SQLAlchemy async URL the SQL store (its
    schema is created if missing).
    """
    if url.startswith("memory://"):
        return InMemoryRecordStore()

    if url.startswith(("redis://", "rediss://", "unix://")):
        from redis.asyncio import Redis

        return RedisRecordStore(Redis.from_url(url))

    engine = create_async_engine(url)
    await init_schema(engine)
    return SQLRecordStore(engine)


__all__ = [
    "RecordStore",
    "STATUS_EXTRA_FIELDS",
    "InMemoryRecordStore",
    "RedisRecordStore",
    "SQLRecordStore",
    "OTPRecordRow",
    "Base",
    "create_async_engine",
    "init_schema",
    "create_store",
]
