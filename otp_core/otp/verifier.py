"""
OTP Verifier
============
Checks a submitted code against the applicable record and consumes it.
"""

from typing import Optional

import structlog

from otp_core.clock import Clock, SystemClock
from otp_core.exceptions import (
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    OTPError,
    ValidationError,
)
from otp_core.logging_config import mask_identity
from otp_core.metrics import record_verification
from otp_core.store.base import RecordStore
from .hashing import CodeHasher
from .models import OTPRecord, VerificationResult
from .proof_token import ProofToken

logger = structlog.get_logger(__name__)


class OTPVerifier:
    """
    Verifies one-time passcodes.

    Without an explicit record id only the latest unused record of an
    identity is reachable; older unused codes are shadowed, not revoked.
    """

    def __init__(
        self,
        store: RecordStore,
        hasher: Optional[CodeHasher] = None,
        clock: Optional[Clock] = None,
        proof: Optional[ProofToken] = None,
    ):
        self.store = store
        self.hasher = hasher or CodeHasher()
        self.clock = clock or SystemClock()
        self.proof = proof

    async def verify(
        self,
        identity: str,
        code: str,
        record_id: Optional[str] = None,
    ) -> VerificationResult:
        """
        Verify and consume a code.

        Checks run in order and stop at the first failure: record exists,
        not expired, code matches, record not yet used.

        Raises:
            ValidationError, NotFoundError, ExpiredError, InvalidCodeError,
            AlreadyUsedError, HashingError, PersistenceError
        """
        identity = (identity or "").strip()
        code = (code or "").strip()
        if not identity or not code:
            raise ValidationError("Identity and code are required")

        try:
            result = await self._verify(identity, code, record_id)
        except OTPError as e:
            record_verification(e.code)
            raise
        record_verification("success")
        return result

    async def _verify(
        self,
        identity: str,
        code: str,
        record_id: Optional[str],
    ) -> VerificationResult:
        log = logger.bind(recipient=mask_identity(identity))

        record = await self._resolve(identity, record_id)
        log = log.bind(record_id=record.id)

        now = self.clock.now()
        if record.is_expired_at(now):
            log.info("OTP expired")
            raise ExpiredError("OTP has expired")

        if not await self.hasher.verify_async(code, record.code_hash):
            log.info("Invalid OTP attempt")
            raise InvalidCodeError("Invalid OTP")

        try:
            await self.store.mark_used(record.id, now)
        except ConflictError:
            log.warning("OTP already used")
            raise AlreadyUsedError("OTP has already been used") from None
        except NotFoundError:
            # Reaped between lookup and consumption.
            raise ExpiredError("OTP has expired") from None

        log.info("OTP verified successfully")

        proof_token = None
        if self.proof is not None:
            proof_token = self.proof.generate(record.id, record.identity, int(now.timestamp()))

        return VerificationResult(
            record_id=record.id,
            identity=record.identity,
            kind=record.kind,
            verified_at=now,
            proof_token=proof_token,
        )

    async def _resolve(self, identity: str, record_id: Optional[str]) -> OTPRecord:
        if record_id:
            record = await self.store.get_by_id(record_id)
            if record.identity != identity:
                raise NotFoundError("OTP verification record not found")
            return record

        try:
            return await self.store.find_latest_valid(identity)
        except NotFoundError:
            # Nothing outstanding: resolve the latest consumed record so a
            # replayed code reports AlreadyUsed rather than NotFound.
            return await self.store.find_latest(identity)
