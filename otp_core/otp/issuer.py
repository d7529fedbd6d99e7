"""
OTP Issuer
==========
Generates a code, persists its hash and hands the plaintext to a notifier.
"""

import uuid
from datetime import timedelta
from typing import Optional

import structlog

from otp_core.clock import Clock, SystemClock
from otp_core.config import OTPConfig
from otp_core.exceptions import DeliveryError, OTPError, ValidationError
from otp_core.logging_config import mask_identity
from otp_core.metrics import record_issued
from otp_core.notifier import BaseNotifier, DeliveryResult
from otp_core.store.base import RecordStore
from .generator import generate_code
from .hashing import CodeHasher
from .models import IssueResult, OTPKind, OTPRecord, OTPStatus

logger = structlog.get_logger(__name__)

DEFAULT_DISPLAY_NAME = "User"


class OTPIssuer:
    """
    Issues one-time passcodes.

    Each call makes exactly one delivery attempt; retries are the caller's
    concern. No store state is held while the notifier runs.
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: BaseNotifier,
        hasher: Optional[CodeHasher] = None,
        clock: Optional[Clock] = None,
        config: Optional[OTPConfig] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or OTPConfig()
        self.hasher = hasher or CodeHasher(
            time_cost=self.config.hash_time_cost,
            memory_cost=self.config.hash_memory_cost,
            parallelism=self.config.hash_parallelism,
        )
        self.clock = clock or SystemClock()

    async def issue(
        self,
        identity: str,
        org_id: str,
        display_name: Optional[str] = None,
        kind: OTPKind = OTPKind.LOGIN,
        request_id: Optional[str] = None,
    ) -> IssueResult:
        """
        Issue and deliver a new code.

        Args:
            identity: Recipient and later lookup key (e.g., email)
            org_id: Tenant the request belongs to
            display_name: Name used in the delivered message
            kind: Purpose of the code
            request_id: Originating request id, becomes the record id

        Returns:
            IssueResult with the record id and expiry

        Raises:
            ValidationError: missing identity or org_id
            PersistenceError / AlreadyExistsError: record could not be stored
            DeliveryError: notifier failed; the record is kept as ``failed``
        """
        identity = (identity or "").strip()
        if not identity:
            raise ValidationError("Identity is required")
        if not org_id:
            raise ValidationError("Organisation id is required")
        try:
            kind = OTPKind(kind)
        except ValueError:
            raise ValidationError(f"Unsupported OTP kind: {kind}") from None

        record_id = request_id or str(uuid.uuid4())
        display_name = display_name or DEFAULT_DISPLAY_NAME
        log = logger.bind(record_id=record_id, recipient=mask_identity(identity), kind=kind.value)

        code = generate_code(self.config.code_length)
        code_hash = await self.hasher.hash_async(code)

        now = self.clock.now()
        record = OTPRecord(
            id=record_id,
            identity=identity,
            org_id=org_id,
            code_hash=code_hash,
            created_at=now,
            expires_at=now + timedelta(seconds=self.config.ttl_seconds),
            kind=kind,
            status=OTPStatus.PENDING,
            display_name=display_name,
        )
        await self.store.create(record)
        log.info("OTP record created", expires_in=self.config.ttl_seconds)

        delivery_exc: Optional[Exception] = None
        try:
            result = await self.notifier.send(identity, code, kind, display_name)
        except Exception as e:
            delivery_exc = e
            result = DeliveryResult(success=False, error_message=str(e) or type(e).__name__)

        if not result.success:
            error = result.error_message or "Delivery failed"
            await self._mark_failed(record_id, error, log)
            record_issued(kind.value, OTPStatus.FAILED.value)
            raise DeliveryError(f"Failed to deliver OTP: {error}", record_id=record_id) from delivery_exc

        await self.store.update_status(record_id, OTPStatus.SENT, sent_at=self.clock.now())
        record_issued(kind.value, OTPStatus.SENT.value)
        log.info("OTP sent", provider_message_id=result.provider_message_id)

        return IssueResult(
            record_id=record_id,
            identity=identity,
            kind=kind,
            status=OTPStatus.SENT,
            expires_at=record.expires_at,
        )

    async def _mark_failed(self, record_id: str, error: str, log) -> None:
        try:
            await self.store.update_status(
                record_id,
                OTPStatus.FAILED,
                error=error,
                failed_at=self.clock.now(),
            )
        except OTPError as e:
            # Delivery failure is still what the caller sees.
            log.error("Could not record delivery failure", error=str(e))
        log.warning("OTP delivery failed", error=error)
