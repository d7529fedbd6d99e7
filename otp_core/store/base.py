"""
Record Store Interface
======================
Contract every OTP record backend implements.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from otp_core.otp.models import OTPRecord, OTPStatus

# Fields update_status() may touch besides status.
STATUS_EXTRA_FIELDS = frozenset({"sent_at", "failed_at", "error"})


class RecordStore(ABC):
    """
    Abstract OTP record store.

    The store exclusively owns record state. The only mutual exclusion it
    guarantees is mark_used(), a per-record compare-and-set.
    """

    @abstractmethod
    async def create(self, record: OTPRecord) -> None:
        """Insert a record. Raises AlreadyExistsError on id collision."""

    @abstractmethod
    async def update_status(self, record_id: str, status: OTPStatus, **extra: Any) -> None:
        """Partially update status and delivery metadata. Raises NotFoundError."""

    @abstractmethod
    async def find_latest_valid(self, identity: str) -> OTPRecord:
        """
        Most recently created unused record for ``identity``.

        Ties on created_at resolve to the highest id. Raises NotFoundError.
        """

    @abstractmethod
    async def find_latest(self, identity: str) -> OTPRecord:
        """Most recently created record for ``identity``, used or not. Same tie-break."""

    @abstractmethod
    async def get_by_id(self, record_id: str) -> OTPRecord:
        """Point lookup. Raises NotFoundError."""

    @abstractmethod
    async def mark_used(self, record_id: str, used_at: datetime) -> None:
        """
        Atomically flip used from False to True.

        Raises ConflictError if already used, NotFoundError if absent.
        """

    @abstractmethod
    async def delete_expired_before(self, timestamp: datetime) -> int:
        """Delete every record with expires_at < timestamp. Returns the count."""

    async def close(self) -> None:
        """Release backend resources."""

    @staticmethod
    def _check_extra(extra: dict) -> None:
        unknown = set(extra) - STATUS_EXTRA_FIELDS
        if unknown:
            raise ValueError(f"Unsupported status fields: {sorted(unknown)}")
