"""
auth/errors.py -- Exception taxonomy for the credential and session layer.

Every cryptographic or storage failure is recovered at the component boundary
into one of these types. Only the HTTP layer (api/main.py exception handlers,
api/routes) turns them into status codes:

  ConfigInvalid    -- fatal at startup; the component refuses to construct
  HashingFailed    -- 500
  HashMalformed    -- collapsed to 401 on login (stored value unusable)
  InternalError    -- 500
  TokenInvalid     -- 401; reason kept for logging
  StorageError     -- 500; never retried automatically
  DuplicateUser    -- 409

A wrong password is not an error: PasswordHasher.verify() returns False.
Session absence or expiry is a SessionStatus value, not an exception.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from enum import Enum


class AuthError(Exception):
    """Base class for every failure raised by the auth package."""


class ConfigInvalid(AuthError):
    """A HashPolicy, token secret or store configuration failed validation."""


class HashingFailed(AuthError):
    """The hashing library failed while producing a new hash."""


class HashMalformed(AuthError):
    """A stored password hash could not be parsed."""


class InternalError(AuthError):
    """A cryptographic failure other than a mismatch or a malformed hash."""


class TokenInvalidReason(str, Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"


class TokenInvalid(AuthError):
    """A bearer token failed verification.

    The reason is preserved for logs; callers at the HTTP boundary must not
    echo it back to the client.
    """

    def __init__(self, reason: TokenInvalidReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class StorageError(AuthError):
    """The persistent store failed. The original exception is chained."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {detail}" if detail else f"{operation} failed")


class DuplicateUser(AuthError):
    """A unique constraint on users (username, email or phone) was violated."""
