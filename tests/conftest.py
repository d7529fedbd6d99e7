"""
Shared fixtures for otp-core tests.
"""

from typing import List, Optional

import pytest

from otp_core.clock import FrozenClock
from otp_core.config import OTPConfig
from otp_core.notifier import BaseNotifier, DeliveryResult
from otp_core.otp import CodeHasher, OTPIssuer, OTPKind, OTPVerifier
from otp_core.store import InMemoryRecordStore


class RecordingNotifier(BaseNotifier):
    """Captures delivered codes instead of sending them."""

    name = "recording"

    def __init__(self, fail_with: Optional[str] = None, raise_exc: Optional[Exception] = None):
        super().__init__()
        self.fail_with = fail_with
        self.raise_exc = raise_exc
        self.sent: List[dict] = []

    async def send(self, identity, code, kind, display_name) -> DeliveryResult:
        self.sent.append({
            "identity": identity,
            "code": code,
            "kind": kind,
            "display_name": display_name,
        })
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.fail_with:
            return DeliveryResult(success=False, error_message=self.fail_with)
        return DeliveryResult(success=True, provider_message_id=f"msg-{len(self.sent)}")

    @property
    def last_code(self) -> str:
        return self.sent[-1]["code"]


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def config():
    return OTPConfig(ttl_seconds=300)


@pytest.fixture
def hasher():
    # Minimal Argon2 cost keeps the suite fast.
    return CodeHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def issuer(store, notifier, hasher, clock, config):
    return OTPIssuer(store, notifier, hasher, clock, config)


@pytest.fixture
def verifier(store, hasher, clock):
    return OTPVerifier(store, hasher, clock)


@pytest.fixture
def issue_kwargs():
    return {
        "identity": "a@x.com",
        "org_id": "org-1",
        "display_name": "Alice",
        "kind": OTPKind.LOGIN,
    }
