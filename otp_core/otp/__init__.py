"""
OTP Issuance and Verification
=============================
Code generation, hashing, issuance, verification and expiry sweeps.
"""

from .models import OTPStatus, OTPKind, OTPRecord, IssueResult, VerificationResult
from .generator import generate_code
from .hashing import CodeHasher
from .proof_token import ProofToken
from .issuer import OTPIssuer
from .verifier import OTPVerifier
from .reaper import ExpiryReaper

__all__ = [
    # Models
    "OTPStatus",
    "OTPKind",
    "OTPRecord",
    "IssueResult",
    "VerificationResult",
    # Primitives
    "generate_code",
    "CodeHasher",
    "ProofToken",
    # Components
    "OTPIssuer",
    "OTPVerifier",
    "ExpiryReaper",
]
