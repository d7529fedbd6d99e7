"""
OTP Code Hashing
================
Salted, adaptive hashing of OTP codes using Argon2id.

- Every hash carries its own random salt and parameters.
- Verification is constant-time in the underlying libraries.
- Legacy bcrypt hashes are still accepted for verification.
- A malformed hash is an error, never a silent mismatch.
"""

import asyncio

import bcrypt
from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from otp_core.exceptions import HashingError

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
# bcrypt only considers the first 72 bytes of its input.
_BCRYPT_MAX_BYTES = 72


class CodeHasher:
    """Argon2id hasher tuned for short-lived OTP codes."""

    def __init__(
        self,
        time_cost: int = 2,
        memory_cost: int = 19456,
        parallelism: int = 1,
    ):
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=32,
            salt_len=16,
            type=Type.ID,
        )

    def hash(self, code: str) -> str:
        """
        Hash a code.

        Returns:
            Argon2id encoded hash (algorithm, parameters, salt and digest)
        """
        if not code:
            raise HashingError("Cannot hash an empty code")
        try:
            return self._hasher.hash(code)
        except Exception as e:
            raise HashingError(f"Hashing failed: {type(e).__name__}") from e

    def verify(self, code: str, encoded: str) -> bool:
        """
        Verify a code against an Argon2id or bcrypt hash.

        Returns:
            True on match, False on mismatch

        Raises:
            HashingError: if the hash is malformed or the library fails
        """
        if not code or not encoded:
            raise HashingError("Code and hash are required for verification")

        if encoded.startswith("$argon2"):
            return self._verify_argon2(code, encoded)
        if encoded.startswith(_BCRYPT_PREFIXES):
            return self._verify_bcrypt(code, encoded)
        raise HashingError("Unrecognised hash format")

    def _verify_argon2(self, code: str, encoded: str) -> bool:
        try:
            return self._hasher.verify(encoded, code)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            raise HashingError(f"Argon2 verification failed: {type(e).__name__}") from e

    def _verify_bcrypt(self, code: str, encoded: str) -> bool:
        secret = code.encode("utf-8")
        if len(secret) > _BCRYPT_MAX_BYTES:
            # Stored codes are short, so an over-long submission cannot match.
            return False
        try:
            return bcrypt.checkpw(secret, encoded.encode("utf-8"))
        except ValueError as e:
            raise HashingError("Malformed bcrypt hash") from e

    def needs_rehash(self, encoded: str) -> bool:
        """True for bcrypt hashes and Argon2 hashes with outdated parameters."""
        if not encoded or encoded.startswith(_BCRYPT_PREFIXES):
            return True
        try:
            return self._hasher.check_needs_rehash(encoded)
        except InvalidHashError:
            return True

    async def hash_async(self, code: str) -> str:
        """Hash in the default executor to avoid blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash, code)

    async def verify_async(self, code: str, encoded: str) -> bool:
        """Verify in the default executor to avoid blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify, code, encoded)
