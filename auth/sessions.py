"""
auth/sessions.py -- Server-side session registry backed by user_login.

A signed token on its own cannot be revoked. SessionStore keeps exactly one
row per username holding the token that is currently allowed; any other
token for that user -- even a correctly signed, unexpired one -- is refused.
Logging in again overwrites the row, which silently logs out every other
device for that user.

upsert() is a single INSERT ... ON CONFLICT (username) DO UPDATE statement,
so concurrent logins for the same user need no locking: whichever write
lands last is the live session.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime
from enum import Enum

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from auth.errors import ConfigInvalid
from auth.models import SessionRecord
from auth.schema import storage_errors, to_naive_utc, user_login, utcnow

logger = logging.getLogger("bookapp.auth")

# Dialects with INSERT ... ON CONFLICT DO UPDATE support in SQLAlchemy.
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SessionStatus(str, Enum):
    ACTIVE = "active"
    NOT_FOUND = "session_not_found"
    REVOKED = "session_revoked"  # a newer login replaced this token
    EXPIRED = "session_expired"


class SessionStore:
    """Repository for the single active session of each subject.

    Usage:
        sessions = SessionStore(engine)
        sessions.upsert("alice", token, created_at, expires_at)
        sessions.lookup("alice", token)   # True while it is the live session
    """

    def __init__(self, engine: Engine) -> None:
        dialect = engine.dialect.name
        if dialect not in _UPSERT_INSERTS:
            raise ConfigInvalid(f"SessionStore does not support the {dialect!r} dialect")
        self.engine = engine
        self._insert = _UPSERT_INSERTS[dialect]

    def upsert(self, subject: str, token: str, created_at: datetime, expires_at: datetime) -> None:
        """Register token as subject's session, replacing any previous one."""
        values = {
            "username": subject,
            "token": token,
            "created_datetime": to_naive_utc(created_at),
            "expire_datetime": to_naive_utc(expires_at),
        }
        stmt = self._insert(user_login).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[user_login.c.username],
            set_={
                "token": stmt.excluded.token,
                "created_datetime": stmt.excluded.created_datetime,
                "expire_datetime": stmt.excluded.expire_datetime,
            },
        )
        with storage_errors("session_upsert"), self.engine.begin() as conn:
            conn.execute(stmt)

    def get(self, subject: str) -> SessionRecord | None:
        with storage_errors("session_get"), self.engine.connect() as conn:
            row = conn.execute(user_login.select().where(user_login.c.username == subject)).fetchone()
        if row is None:
            return None
        return SessionRecord(
            subject=row.username,
            token=row.token or "",
            created_at=row.created_datetime,
            expires_at=row.expire_datetime,
        )

    def status(self, subject: str, token: str, now: datetime | None = None) -> SessionStatus:
        """Classify token against subject's registered session."""
        record = self.get(subject)
        if record is None:
            return SessionStatus.NOT_FOUND
        if not hmac.compare_digest(record.token.encode("utf-8"), token.encode("utf-8")):
            return SessionStatus.REVOKED
        current = to_naive_utc(now) if now is not None else utcnow()
        if record.expires_at <= current:
            return SessionStatus.EXPIRED
        return SessionStatus.ACTIVE

    def lookup(self, subject: str, token: str) -> bool:
        """True iff token is subject's registered session and has not expired."""
        return self.status(subject, token) is SessionStatus.ACTIVE

    def revoke(self, subject: str) -> bool:
        """Delete subject's session row. Returns True if one existed."""
        with storage_errors("session_revoke"), self.engine.begin() as conn:
            result = conn.execute(user_login.delete().where(user_login.c.username == subject))
        revoked = result.rowcount > 0
        if revoked:
            logger.info("Session revoked for %s", subject)
        return revoked
