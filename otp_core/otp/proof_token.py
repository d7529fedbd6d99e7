"""
Proof Token
===========
Signed, secret-free proof that an OTP record was verified.
"""

import time
import base64
import json
import hmac
import hashlib
from typing import Optional


class ProofToken:
    """Generates cryptographic proof of successful verification."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Proof token secret cannot be empty")
        self.secret = secret

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(
            self.secret.encode(),
            payload_b64.encode(),
            hashlib.sha256,
        ).hexdigest()[:32]

    def generate(self, record_id: str, identity: str, issued_at: Optional[int] = None) -> str:
        """
        Generate a proof token for a verified record.

        Args:
            record_id: Verified record ID
            identity: Identity the record was issued to (stored hashed)
            issued_at: Unix timestamp, defaults to now

        Returns:
            Signed proof token
        """
        identity_hash = hashlib.sha256(identity.encode()).hexdigest()
        payload = {
            "rid": record_id,
            "ih": identity_hash[:16],
            "ts": int(time.time()) if issued_at is None else issued_at,
            "ver": "1",
        }

        payload_json = json.dumps(payload, separators=(',', ':'))
        payload_b64 = base64.urlsafe_b64encode(payload_json.encode()).decode()

        return f"{payload_b64}.{self._sign(payload_b64)}"

    def verify(self, token: str, max_age_seconds: int = 3600) -> Optional[dict]:
        """
        Verify a proof token.

        Returns:
            Payload if valid, None otherwise
        """
        parts = token.split('.')
        if len(parts) != 2:
            return None

        payload_b64, signature = parts
        if not hmac.compare_digest(signature, self._sign(payload_b64)):
            return None

        try:
            payload = json.loads(base64.urlsafe_b64decode(payload_b64).decode())
        except (ValueError, UnicodeDecodeError):
            return None

        if time.time() - payload.get("ts", 0) > max_age_seconds:
            return None

        return payload
