"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """A row of the users table.

    pwd holds the encoded password hash (Argon2 PHC string, or a legacy bcrypt
    hash awaiting upgrade). It must never leave the server: routes map User to
    a profile model that has no password field.
    """

    username: str
    name: str
    surname: str
    phone: str
    email: str
    pwd: str
    created_by: str
    id: int | None = None
    create_date: datetime | None = None
    write_date: datetime | None = None
    update_by: str | None = None
    active: bool = True


@dataclass(frozen=True)
class Claims:
    """The signed payload of a session token.

    issued_at / expires_at are epoch seconds. token_id is a random nonce, so
    two logins in the same second still produce different tokens.
    """

    subject: str
    issued_at: int
    expires_at: int
    token_id: str


@dataclass(frozen=True)
class SessionRecord:
    """A row of the user_login table -- the subject's single active session."""

    subject: str
    token: str
    created_at: datetime
    expires_at: datetime
