"""
OTP Configuration
=================
Settings for code generation, expiry, hashing cost and backends.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class OTPConfig:
    """Configuration for OTP issuance and verification."""
    code_length: int = 6
    ttl_seconds: int = 300  # 5 minutes
    sweep_interval_seconds: int = 3600  # hourly

    # Argon2id cost (OWASP minimum profile)
    hash_time_cost: int = 2
    hash_memory_cost: int = 19456  # KiB
    hash_parallelism: int = 1

    store_url: str = "memory://"
    notifier_url: Optional[str] = None
    notifier_timeout: float = 10.0

    proof_secret: Optional[str] = None
    proof_max_age_seconds: int = 3600

    @classmethod
    def from_env(cls) -> "OTPConfig":
        """Build a config from ``OTP_*`` environment variables."""
        return cls(
            code_length=int(os.getenv("OTP_CODE_LENGTH", "6")),
            ttl_seconds=int(os.getenv("OTP_TTL_SECONDS", "300")),
            sweep_interval_seconds=int(os.getenv("OTP_SWEEP_INTERVAL_SECONDS", "3600")),
            hash_time_cost=int(os.getenv("OTP_HASH_TIME_COST", "2")),
            hash_memory_cost=int(os.getenv("OTP_HASH_MEMORY_COST", "19456")),
            hash_parallelism=int(os.getenv("OTP_HASH_PARALLELISM", "1")),
            store_url=os.getenv("OTP_STORE_URL", "memory://"),
            notifier_url=os.getenv("OTP_NOTIFIER_URL") or None,
            notifier_timeout=float(os.getenv("OTP_NOTIFIER_TIMEOUT", "10.0")),
            proof_secret=os.getenv("OTP_PROOF_SECRET") or None,
            proof_max_age_seconds=int(os.getenv("OTP_PROOF_MAX_AGE_SECONDS", "3600")),
        )
