"""
auth/passwords.py -- Argon2 password hashing with tunable cost parameters.

Security design decisions:
  Algorithm: argon2-cffi (Argon2id by default). Memory-hard, so GPU/ASIC
       brute-force is expensive. Cost parameters come from a HashPolicy.

  Verification: argon2.PasswordHasher.verify() re-derives under the variant
       and parameters embedded in the stored hash, NOT the current policy.
       That is what lets needs_rehash() strengthen stored hashes one login at
       a time without forcing password resets.

  Offloading: hash() and verify() run on the HashingPool. needs_rehash() only
       parses the PHC string, so it runs inline.

  Pepper: when the policy carries a secret_key, the password is replaced by
       HMAC-SHA256(secret_key, password) before hashing. A database dump alone
       is then useless for offline guessing. Rotating the key invalidates every
       Argon2 hash made under the old one.

  Legacy bcrypt: migration only, not a second supported algorithm. Users
       created by older tooling may still hold $2b$ hashes. They verify through
       bcrypt and always report needs_rehash() == True, so the first successful
       login moves them to Argon2. New hashes are never written with bcrypt.

  Timing: verify_dummy() burns one verification against a fixed hash so the
       login path costs the same whether or not the username exists.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import threading

import argon2
import bcrypt
from argon2.exceptions import HashingError, InvalidHashError, VerificationError, VerifyMismatchError

from auth.errors import ConfigInvalid, HashingFailed, HashMalformed, InternalError
from auth.policy import Argon2Variant, HashPolicy
from auth.workers import HashingPool

logger = logging.getLogger("bookapp.auth")

_SALT_LENGTH = 16
_LEGACY_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
_BCRYPT_MAX_BYTES = 72
_DUMMY_PASSWORD = "bookapp_timing_dummy"

_ARGON2_TYPES = {
    Argon2Variant.ARGON2ID: argon2.Type.ID,
    Argon2Variant.ARGON2I: argon2.Type.I,
    Argon2Variant.ARGON2D: argon2.Type.D,
}


def is_legacy_bcrypt(encoded: str) -> bool:
    return encoded.startswith(_LEGACY_BCRYPT_PREFIXES)


class PasswordHasher:
    """Hashes and verifies passwords under a HashPolicy.

    Usage:
        hasher = PasswordHasher(HashPolicy.profile("production"), HashingPool(2))
        encoded = await hasher.hash("s3cret")
        ok = await hasher.verify("s3cret", encoded)
        if ok and hasher.needs_rehash(encoded): ...
    """

    def __init__(self, policy: HashPolicy, pool: HashingPool) -> None:
        # Catches policies built with model_construct() or otherwise unchecked.
        self._policy = policy.revalidate()
        self._pool = pool
        try:
            self._argon = argon2.PasswordHasher(
                time_cost=self._policy.iterations,
                memory_cost=self._policy.memory_cost_kb,
                parallelism=self._policy.parallelism,
                hash_len=self._policy.output_length,
                salt_len=_SALT_LENGTH,
                type=_ARGON2_TYPES[self._policy.variant],
            )
        except (KeyError, ValueError) as exc:
            raise ConfigInvalid(f"Argon2 rejected the hash policy: {exc}") from exc
        self._pepper = self._policy.secret_bytes()
        self._dummy_hash: str | None = None
        self._dummy_lock = threading.Lock()

    @property
    def policy(self) -> HashPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Async API (offloaded to the hashing pool)
    # ------------------------------------------------------------------

    async def hash(self, password: str) -> str:
        return await self._pool.run(self._hash_blocking, password)

    async def verify(self, password: str, encoded: str) -> bool:
        """Return True on match, False on mismatch.

        Raises HashMalformed if encoded cannot be parsed and InternalError for
        any other verification failure.
        """
        return await self._pool.run(self._verify_blocking, password, encoded)

    async def verify_dummy(self, password: str) -> None:
        """Spend one verification's worth of work and discard the result."""
        await self._pool.run(self._verify_dummy_blocking, password)

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def needs_rehash(self, encoded: str) -> bool:
        """True if any embedded cost parameter is below the current policy.

        Only memory, iterations and parallelism are compared. A hash made under
        a stronger policy than the current one is left alone.
        """
        if is_legacy_bcrypt(encoded):
            return True
        try:
            params = argon2.extract_parameters(encoded)
        except InvalidHashError as exc:
            raise HashMalformed("Stored password hash could not be parsed") from exc
        return (
            params.memory_cost < self._policy.memory_cost_kb
            or params.time_cost < self._policy.iterations
            or params.parallelism < self._policy.parallelism
        )

    # ------------------------------------------------------------------
    # Blocking units (run on pool threads)
    # ------------------------------------------------------------------

    def _keyed(self, password: str) -> str | bytes:
        if self._pepper is None:
            return password
        return hmac.new(self._pepper, password.encode("utf-8"), hashlib.sha256).digest()

    def _hash_blocking(self, password: str) -> str:
        try:
            return self._argon.hash(self._keyed(password))
        except HashingError as exc:
            logger.error("Argon2 hashing failed: %s", exc)
            raise HashingFailed("Password hashing failed") from exc

    def _verify_blocking(self, password: str, encoded: str) -> bool:
        if is_legacy_bcrypt(encoded):
            return _verify_bcrypt(password, encoded)
        try:
            return self._argon.verify(encoded, self._keyed(password))
        except VerifyMismatchError:
            return False
        except (InvalidHashError, UnicodeEncodeError) as exc:
            raise HashMalformed("Stored password hash could not be parsed") from exc
        except VerificationError as exc:
            logger.error("Argon2 verification error: %s", exc)
            raise InternalError("Password verification failed") from exc

    def _verify_dummy_blocking(self, password: str) -> None:
        if self._dummy_hash is None:
            # first callers on several pool threads must not each pay for a hash
            with self._dummy_lock:
                if self._dummy_hash is None:
                    self._dummy_hash = self._hash_blocking(_DUMMY_PASSWORD)
        self._verify_blocking(password, self._dummy_hash)


def _verify_bcrypt(password: str, encoded: str) -> bool:
    # bcrypt only ever looked at the first 72 bytes; newer releases raise
    # instead of truncating, so truncate explicitly to match stored hashes.
    candidate = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(candidate, encoded.encode("utf-8"))
    except ValueError as exc:
        raise HashMalformed("Stored bcrypt hash could not be parsed") from exc
