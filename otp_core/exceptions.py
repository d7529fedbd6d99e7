"""
OTP Exceptions
==============
Error taxonomy surfaced to callers of the issuer, verifier and record stores.
"""

from typing import Optional


class OTPError(Exception):
    """Base exception for all OTP failures."""

    code = "otp_error"

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)


class ValidationError(OTPError):
    """Raised when a request is missing required input."""
    code = "invalid_argument"


class NotFoundError(OTPError):
    """Raised when no applicable OTP record exists."""
    code = "not_found"


class ExpiredError(OTPError):
    """Raised when the record's expiry has passed."""
    code = "expired"


class InvalidCodeError(OTPError):
    """Raised when the submitted code does not match the stored hash."""
    code = "invalid_code"


class AlreadyUsedError(OTPError):
    """Raised when the record has already been consumed."""
    code = "already_used"


class AlreadyExistsError(OTPError):
    """Raised when a record id collides on create."""
    code = "already_exists"


class ConflictError(OTPError):
    """Raised when a compare-and-set loses against a concurrent writer."""
    code = "conflict"


class PersistenceError(OTPError):
    """Raised when the backing store fails."""
    code = "persistence_error"

    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception


class HashingError(OTPError):
    """Raised when hashing or hash comparison fails (malformed hash, library error)."""
    code = "hashing_error"


class DeliveryError(OTPError):
    """Raised when the notifier could not deliver the code."""
    code = "delivery_failed"

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id
