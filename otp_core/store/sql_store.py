"""
SQL Record Store
================
SQLAlchemy async OTP record store.

mark_used is a conditional UPDATE (``WHERE used = false``), which the
database serialises per row, so concurrent verifications of one record
yield exactly one winner.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import Boolean, DateTime, Index, String, Text, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import Mapped, mapped_column

from otp_core.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from otp_core.otp.models import OTPKind, OTPRecord, OTPStatus
from .base import RecordStore
from .database import Base, create_session_factory, session_scope

logger = structlog.get_logger(__name__)


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class OTPRecordRow(Base):
    __tablename__ = "otp_records"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    identity: Mapped[str] = mapped_column(String(320))
    org_id: Mapped[str] = mapped_column(String(128))
    code_hash: Mapped[str] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(16))
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_otp_records_identity_used_created", "identity", "used", "created_at"),
    )

    @classmethod
    def from_record(cls, record: OTPRecord) -> "OTPRecordRow":
        return cls(
            id=record.id,
            identity=record.identity,
            org_id=record.org_id,
            code_hash=record.code_hash,
            kind=record.kind.value,
            status=record.status.value,
            display_name=record.display_name,
            created_at=_to_db(record.created_at),
            expires_at=_to_db(record.expires_at),
            used=record.used,
            used_at=_to_db(record.used_at),
            sent_at=_to_db(record.sent_at),
            failed_at=_to_db(record.failed_at),
            error=record.error,
        )

    def to_record(self) -> OTPRecord:
        return OTPRecord(
            id=self.id,
            identity=self.identity,
            org_id=self.org_id,
            code_hash=self.code_hash,
            kind=OTPKind(self.kind),
            status=OTPStatus(self.status),
            display_name=self.display_name,
            created_at=_from_db(self.created_at),
            expires_at=_from_db(self.expires_at),
            used=bool(self.used),
            used_at=_from_db(self.used_at),
            sent_at=_from_db(self.sent_at),
            failed_at=_from_db(self.failed_at),
            error=self.error,
        )


class SQLRecordStore(RecordStore):
    """OTP record store on any SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    async def create(self, record: OTPRecord) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                session.add(OTPRecordRow.from_record(record))
        except IntegrityError as e:
            raise AlreadyExistsError(f"OTP record {record.id} already exists") from e
        except SQLAlchemyError as e:
            raise self._persistence_error("create", e) from e

    async def update_status(self, record_id: str, status: OTPStatus, **extra: Any) -> None:
        self._check_extra(extra)
        values = {"status": OTPStatus(status).value}
        for name, value in extra.items():
            values[name] = _to_db(value) if isinstance(value, datetime) else value

        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    update(OTPRecordRow)
                    .where(OTPRecordRow.id == record_id)
                    .values(**values)
                )
                updated = result.rowcount
        except SQLAlchemyError as e:
            raise self._persistence_error("update_status", e) from e

        if not updated:
            raise NotFoundError(f"OTP record {record_id} not found")

    async def find_latest_valid(self, identity: str) -> OTPRecord:
        return await self._find_latest(
            "find_latest_valid",
            OTPRecordRow.identity == identity,
            OTPRecordRow.used.is_(False),
        )

    async def find_latest(self, identity: str) -> OTPRecord:
        return await self._find_latest("find_latest", OTPRecordRow.identity == identity)

    async def _find_latest(self, operation: str, *criteria) -> OTPRecord:
        stmt = (
            select(OTPRecordRow)
            .where(*criteria)
            .order_by(OTPRecordRow.created_at.desc(), OTPRecordRow.id.desc())
            .limit(1)
        )
        try:
            async with session_scope(self._session_factory) as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
                record = row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            raise self._persistence_error(operation, e) from e

        if record is None:
            raise NotFoundError("No valid OTP found for this identity")
        return record

    async def get_by_id(self, record_id: str) -> OTPRecord:
        try:
            async with session_scope(self._session_factory) as session:
                row = await session.get(OTPRecordRow, record_id)
                record = row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            raise self._persistence_error("get_by_id", e) from e

        if record is None:
            raise NotFoundError(f"OTP record {record_id} not found")
        return record

    async def mark_used(self, record_id: str, used_at: datetime) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    update(OTPRecordRow)
                    .where(OTPRecordRow.id == record_id, OTPRecordRow.used.is_(False))
                    .values(used=True, used_at=_to_db(used_at))
                )
                if result.rowcount == 1:
                    return
                exists = await session.scalar(
                    select(OTPRecordRow.id).where(OTPRecordRow.id == record_id)
                )
        except SQLAlchemyError as e:
            raise self._persistence_error("mark_used", e) from e

        if exists is None:
            raise NotFoundError(f"OTP record {record_id} not found")
        raise ConflictError(f"OTP record {record_id} already used")

    async def delete_expired_before(self, timestamp: datetime) -> int:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    delete(OTPRecordRow).where(OTPRecordRow.expires_at < _to_db(timestamp))
                )
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise self._persistence_error("delete_expired_before", e) from e

    async def close(self) -> None:
        await self.engine.dispose()

    @staticmethod
    def _persistence_error(operation: str, error: Exception) -> PersistenceError:
        logger.error("SQL OTP store operation failed", operation=operation, error=str(error))
        return PersistenceError("OTP store unavailable", last_exception=error)
