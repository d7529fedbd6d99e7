"""
OTP Core Library
================
One-time passcode issuance, verification and expiry for SMSLY services.
"""

__version__ = "0.1.0"

# OTP
from otp_core.otp import (
    OTPStatus,
    OTPKind,
    OTPRecord,
    IssueResult,
    VerificationResult,
    generate_code,
    CodeHasher,
    ProofToken,
    OTPIssuer,
    OTPVerifier,
    ExpiryReaper,
)

# Stores
from otp_core.store import (
    RecordStore,
    InMemoryRecordStore,
    RedisRecordStore,
    SQLRecordStore,
    create_store,
)

# Collaborators
from otp_core.clock import Clock, SystemClock, FrozenClock
from otp_core.notifier import BaseNotifier, HttpNotifier, DeliveryResult
from otp_core.config import OTPConfig
from otp_core.service import OTPService, IssueRequest, VerifyRequest

# Errors
from otp_core.exceptions import (
    OTPError,
    ValidationError,
    NotFoundError,
    ExpiredError,
    InvalidCodeError,
    AlreadyUsedError,
    AlreadyExistsError,
    ConflictError,
    PersistenceError,
    HashingError,
    DeliveryError,
)

# Logging
from otp_core.logging_config import configure_logging, mask_identity

__all__ = [
    # OTP
    "OTPStatus",
    "OTPKind",
    "OTPRecord",
    "IssueResult",
    "VerificationResult",
    "generate_code",
    "CodeHasher",
    "ProofToken",
    "OTPIssuer",
    "OTPVerifier",
    "ExpiryReaper",
    # Stores
    "RecordStore",
    "InMemoryRecordStore",
    "RedisRecordStore",
    "SQLRecordStore",
    "create_store",
    # Collaborators
    "Clock",
    "SystemClock",
    "FrozenClock",
    "BaseNotifier",
    "HttpNotifier",
    "DeliveryResult",
    "OTPConfig",
    "OTPService",
    "IssueRequest",
    "VerifyRequest",
    # Errors
    "OTPError",
    "ValidationError",
    "NotFoundError",
    "ExpiredError",
    "InvalidCodeError",
    "AlreadyUsedError",
    "AlreadyExistsError",
    "ConflictError",
    "PersistenceError",
    "HashingError",
    "DeliveryError",
    # Logging
    "configure_logging",
    "mask_identity",
]
