"""
Redis Record Store
==================
Redis-backed OTP record store using Lua scripts for atomic operations.

Layout:
    otp:record:{id}        hash with the record fields
    otp:identity:{ident}   sorted set of unused record ids, scored by created_at
    otp:history:{ident}    sorted set of all record ids, scored by created_at
    otp:expiry             sorted set of all record ids, scored by expires_at

The expiry purge touches per-identity keys it discovers at run time, so the
store needs a single Redis node (or a replicated primary); Redis Cluster is
not supported.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from redis.exceptions import RedisError

from otp_core.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from otp_core.otp.models import OTPRecord, OTPStatus
from .base import RecordStore

logger = structlog.get_logger(__name__)

# KEYS: record, identity set, expiry set, history set
# ARGV: id, created_at score, expires_at score, field/value pairs...
CREATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
for i = 4, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
redis.call('ZADD', KEYS[3], ARGV[3], ARGV[1])
redis.call('ZADD', KEYS[4], ARGV[2], ARGV[1])
return 1
"""

# KEYS: record
# ARGV: field/value pairs...
UPDATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return 0
end
for i = 1, #ARGV, 2 do
    redis.call('HSET', KEYS[1], ARGV[i], ARGV[i + 1])
end
return 1
"""

# KEYS: record, identity set
# ARGV: id, used_at
MARK_USED_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return -1
end
if redis.call('HGET', KEYS[1], 'used') == '1' then
    return 0
end
redis.call('HSET', KEYS[1], 'used', '1', 'used_at', ARGV[2])
redis.call('ZREM', KEYS[2], ARGV[1])
return 1
"""

# KEYS: expiry set
# ARGV: cutoff score, record key prefix, identity key prefix, history key prefix
PURGE_SCRIPT = """
local ids = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', '(' .. ARGV[1])
for _, id in ipairs(ids) do
    local record_key = ARGV[2] .. id
    local identity = redis.call('HGET', record_key, 'identity')
    if identity then
        redis.call('ZREM', ARGV[3] .. identity, id)
        redis.call('ZREM', ARGV[4] .. identity, id)
    end
    redis.call('DEL', record_key)
    redis.call('ZREM', KEYS[1], id)
end
return #ids
"""


def _encode(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _decode(raw: Dict[Any, Any]) -> Dict[str, str]:
    return {
        k.decode("utf-8") if isinstance(k, bytes) else k:
        v.decode("utf-8") if isinstance(v, bytes) else v
        for k, v in raw.items()
    }


class RedisRecordStore(RecordStore):
    """
    Redis-backed OTP record store.

    Every multi-key mutation runs as a single Lua script, so mark_used is a
    true compare-and-set and purges never interleave with it.
    """

    def __init__(self, redis_client, key_prefix: str = "otp"):
        """
        Args:
            redis_client: Async Redis client
            key_prefix: Namespace for all keys
        """
        self.redis = redis_client
        self.record_prefix = f"{key_prefix}:record:"
        self.identity_prefix = f"{key_prefix}:identity:"
        self.history_prefix = f"{key_prefix}:history:"
        self.expiry_key = f"{key_prefix}:expiry"
        self._script_shas: Dict[str, str] = {}

    async def _run(self, script: str, keys: List[str], args: List[Any]) -> Any:
        """Load the Lua script if needed and run it."""
        try:
            sha = self._script_shas.get(script)
            if sha is None:
                sha = await self.redis.script_load(script)
                self._script_shas[script] = sha
            return await self.redis.evalsha(sha, len(keys), *keys, *args)
        except RedisError as e:
            logger.error("Redis OTP store operation failed", error=str(e))
            raise PersistenceError("OTP store unavailable", last_exception=e) from e

    def _record_key(self, record_id: str) -> str:
        return f"{self.record_prefix}{record_id}"

    async def _load(self, record_id: str) -> Optional[OTPRecord]:
        try:
            raw = await self.redis.hgetall(self._record_key(record_id))
        except RedisError as e:
            logger.error("Redis OTP store read failed", error=str(e))
            raise PersistenceError("OTP store unavailable", last_exception=e) from e
        if not raw:
            return None
        data: Dict[str, Any] = _decode(raw)
        data["used"] = data.get("used") == "1"
        return OTPRecord.from_dict(data)

    async def create(self, record: OTPRecord) -> None:
        pairs: List[str] = []
        for name, value in record.to_dict().items():
            encoded = _encode(value)
            if encoded is not None:
                pairs.extend([name, encoded])

        created = await self._run(
            CREATE_SCRIPT,
            [
                self._record_key(record.id),
                f"{self.identity_prefix}{record.identity}",
                self.expiry_key,
                f"{self.history_prefix}{record.identity}",
            ],
            [record.id, record.created_at.timestamp(), record.expires_at.timestamp(), *pairs],
        )
        if not created:
            raise AlreadyExistsError(f"OTP record {record.id} already exists")

    async def update_status(self, record_id: str, status: OTPStatus, **extra: Any) -> None:
        self._check_extra(extra)
        pairs = ["status", _encode(OTPStatus(status))]
        for name, value in extra.items():
            encoded = _encode(value)
            if encoded is not None:
                pairs.extend([name, encoded])

        updated = await self._run(UPDATE_SCRIPT, [self._record_key(record_id)], pairs)
        if not updated:
            raise NotFoundError(f"OTP record {record_id} not found")

    async def find_latest_valid(self, identity: str) -> OTPRecord:
        record = await self._latest_in(f"{self.identity_prefix}{identity}")
        if record is None or record.used:
            raise NotFoundError("No valid OTP found for this identity")
        return record

    async def find_latest(self, identity: str) -> OTPRecord:
        record = await self._latest_in(f"{self.history_prefix}{identity}")
        if record is None:
            raise NotFoundError("No valid OTP found for this identity")
        return record

    async def _latest_in(self, index_key: str) -> Optional[OTPRecord]:
        try:
            # Equal scores come back in descending lexicographic order,
            # so the highest id wins ties.
            ids = await self.redis.zrevrange(index_key, 0, 0)
        except RedisError as e:
            logger.error("Redis OTP store read failed", error=str(e))
            raise PersistenceError("OTP store unavailable", last_exception=e) from e
        if not ids:
            return None
        record_id = ids[0].decode("utf-8") if isinstance(ids[0], bytes) else ids[0]
        return await self._load(record_id)

    async def get_by_id(self, record_id: str) -> OTPRecord:
        record = await self._load(record_id)
        if record is None:
            raise NotFoundError(f"OTP record {record_id} not found")
        return record

    async def mark_used(self, record_id: str, used_at: datetime) -> None:
        record_key = self._record_key(record_id)
        try:
            identity = await self.redis.hget(record_key, "identity")
        except RedisError as e:
            logger.error("Redis OTP store read failed", error=str(e))
            raise PersistenceError("OTP store unavailable", last_exception=e) from e
        if identity is None:
            raise NotFoundError(f"OTP record {record_id} not found")
        if isinstance(identity, bytes):
            identity = identity.decode("utf-8")

        result = await self._run(
            MARK_USED_SCRIPT,
            [record_key, f"{self.identity_prefix}{identity}"],
            [record_id, _encode(used_at)],
        )
        if result == -1:
            raise NotFoundError(f"OTP record {record_id} not found")
        if result == 0:
            raise ConflictError(f"OTP record {record_id} already used")

    async def delete_expired_before(self, timestamp: datetime) -> int:
        deleted = await self._run(
            PURGE_SCRIPT,
            [self.expiry_key],
            [timestamp.timestamp(), self.record_prefix, self.identity_prefix, self.history_prefix],
        )
        return int(deleted)

    async def close(self) -> None:
        await self.redis.aclose()
