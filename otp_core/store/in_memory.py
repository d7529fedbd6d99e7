"""
In-Memory Record Store
======================
Dict-backed store for development and testing.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict

import structlog

from otp_core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from otp_core.otp.models import OTPRecord, OTPStatus
from .base import RecordStore

logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """
    In-memory OTP record store.

    For development and testing only.
    Use RedisRecordStore or SQLRecordStore in production.
    """

    def __init__(self):
        self._records: Dict[str, OTPRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: OTPRecord) -> None:
        async with self._lock:
            if record.id in self._records:
                raise AlreadyExistsError(f"OTP record {record.id} already exists")
            self._records[record.id] = replace(record)

    async def update_status(self, record_id: str, status: OTPStatus, **extra: Any) -> None:
        self._check_extra(extra)
        async with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"OTP record {record_id} not found")
            self._records[record_id] = replace(record, status=OTPStatus(status), **extra)

    async def find_latest_valid(self, identity: str) -> OTPRecord:
        async with self._lock:
            candidates = [
                r for r in self._records.values()
                if r.identity == identity and not r.used
            ]
            if not candidates:
                raise NotFoundError("No valid OTP found for this identity")
            latest = max(candidates, key=lambda r: (r.created_at, r.id))
            return replace(latest)

    async def find_latest(self, identity: str) -> OTPRecord:
        async with self._lock:
            candidates = [r for r in self._records.values() if r.identity == identity]
            if not candidates:
                raise NotFoundError("No valid OTP found for this identity")
            return replace(max(candidates, key=lambda r: (r.created_at, r.id)))

    async def get_by_id(self, record_id: str) -> OTPRecord:
        async with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"OTP record {record_id} not found")
            return replace(record)

    async def mark_used(self, record_id: str, used_at: datetime) -> None:
        async with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"OTP record {record_id} not found")
            if record.used:
                raise ConflictError(f"OTP record {record_id} already used")
            self._records[record_id] = replace(record, used=True, used_at=used_at)

    async def delete_expired_before(self, timestamp: datetime) -> int:
        async with self._lock:
            expired = [
                record_id for record_id, r in self._records.items()
                if r.expires_at < timestamp
            ]
            for record_id in expired:
                del self._records[record_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)
