"""
OTP Service
===========
Inbound ports: issue requests, verify requests and timer-driven sweeps,
each invocable without a hosting platform.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from otp_core.clock import Clock, SystemClock
from otp_core.config import OTPConfig
from otp_core.notifier import BaseNotifier, HttpNotifier
from otp_core.otp.hashing import CodeHasher
from otp_core.otp.issuer import OTPIssuer
from otp_core.otp.models import IssueResult, OTPKind, VerificationResult
from otp_core.otp.proof_token import ProofToken
from otp_core.otp.reaper import ExpiryReaper
from otp_core.otp.verifier import OTPVerifier
from otp_core.store import RecordStore, create_store

logger = structlog.get_logger(__name__)


@dataclass
class IssueRequest:
    """Request to issue and deliver a code."""
    identity: str
    org_id: str
    display_name: Optional[str] = None
    kind: OTPKind = OTPKind.LOGIN
    request_id: Optional[str] = None


@dataclass
class VerifyRequest:
    """Request to verify a submitted code."""
    identity: str
    code: str
    record_id: Optional[str] = None


class OTPService:
    """Wires issuer, verifier and reaper around one store."""

    def __init__(
        self,
        store: RecordStore,
        notifier: BaseNotifier,
        config: Optional[OTPConfig] = None,
        clock: Optional[Clock] = None,
        hasher: Optional[CodeHasher] = None,
    ):
        self.config = config or OTPConfig()
        self.clock = clock or SystemClock()
        self.store = store
        self.notifier = notifier
        self.hasher = hasher or CodeHasher(
            time_cost=self.config.hash_time_cost,
            memory_cost=self.config.hash_memory_cost,
            parallelism=self.config.hash_parallelism,
        )
        proof = ProofToken(self.config.proof_secret) if self.config.proof_secret else None

        self.issuer = OTPIssuer(store, notifier, self.hasher, self.clock, self.config)
        self.verifier = OTPVerifier(store, self.hasher, self.clock, proof)
        self.reaper = ExpiryReaper(store, self.clock, self.config.sweep_interval_seconds)

    @classmethod
    async def from_config(
        cls,
        config: Optional[OTPConfig] = None,
        notifier: Optional[BaseNotifier] = None,
        store: Optional[RecordStore] = None,
    ) -> "OTPService":
        """
        Build a service from configuration.

        Without an explicit notifier, ``config.notifier_url`` must be set and
        an HttpNotifier is used.
        """
        config = config or OTPConfig.from_env()
        if notifier is None:
            if not config.notifier_url:
                raise ValueError("A notifier or OTP_NOTIFIER_URL is required")
            notifier = HttpNotifier(config.notifier_url, timeout=config.notifier_timeout)
        if store is None:
            store = await create_store(config.store_url)
        await notifier.initialize()
        return cls(store, notifier, config)

    async def handle_issue(self, request: IssueRequest) -> IssueResult:
        return await self.issuer.issue(
            identity=request.identity,
            org_id=request.org_id,
            display_name=request.display_name,
            kind=request.kind,
            request_id=request.request_id,
        )

    async def handle_verify(self, request: VerifyRequest) -> VerificationResult:
        return await self.verifier.verify(
            identity=request.identity,
            code=request.code,
            record_id=request.record_id,
        )

    async def sweep(self) -> int:
        return await self.reaper.sweep()

    async def close(self) -> None:
        if self.reaper.running:
            await self.reaper.stop()
        await self.notifier.close()
        await self.store.close()
        logger.info("OTP service closed")
