"""
OTP Models
==========
Data models and enums for OTP records and operation results.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from dataclasses import asdict, dataclass, fields
from enum import Enum


class OTPStatus(str, Enum):
    """Issuance lifecycle of a record, independent of verification."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OTPKind(str, Enum):
    """Purpose of the code; selects downstream messaging content."""
    LOGIN = "login"
    REGISTRATION = "registration"


_DATETIME_FIELDS = ("created_at", "expires_at", "used_at", "sent_at", "failed_at")


@dataclass
class OTPRecord:
    """One OTP issuance attempt. Holds the code hash, never the code."""
    id: str
    identity: str
    org_id: str
    code_hash: str
    created_at: datetime
    expires_at: datetime
    kind: OTPKind = OTPKind.LOGIN
    status: OTPStatus = OTPStatus.PENDING
    used: bool = False
    used_at: Optional[datetime] = None
    display_name: Optional[str] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error: Optional[str] = None

    def is_expired_at(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OTPRecord":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["kind"] = OTPKind(values.get("kind", OTPKind.LOGIN))
        values["status"] = OTPStatus(values.get("status", OTPStatus.PENDING))
        values["used"] = bool(values.get("used", False))
        for name in _DATETIME_FIELDS:
            value = values.get(name)
            if isinstance(value, str):
                value = datetime.fromisoformat(value)
            if isinstance(value, datetime) and value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            values[name] = value
        return cls(**values)


@dataclass
class IssueResult:
    """Outcome of a successful issuance. Carries no secret material."""
    record_id: str
    identity: str
    kind: OTPKind
    status: OTPStatus
    expires_at: datetime


@dataclass
class VerificationResult:
    """Confirmation of a successful verification. Carries no secret material."""
    record_id: str
    identity: str
    kind: OTPKind
    verified_at: datetime
    proof_token: Optional[str] = None

    @property
    def success(self) -> bool:
        return True
