"""
auth/schema.py -- SQLAlchemy Core tables and the shared pooled Engine.

One Engine (one connection pool) is created at startup and handed to both
UserStore and SessionStore, so login traffic and user administration share
the same bounded pool.

Tables:
  users       -- credential + profile rows; pwd holds the encoded hash
  user_login  -- one row per username: the single active session token

Timestamps are stored as naive UTC (TIMESTAMP WITHOUT TIME ZONE). Always use
utcnow() / to_naive_utc() when writing or comparing them.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    event,
    func,
    true,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateUser, StorageError

logger = logging.getLogger("bookapp.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("name", String(50), nullable=False),
    Column("surname", String(70), nullable=False),
    Column("phone", String(20), nullable=False, unique=True),
    Column("email", String(100), nullable=False, unique=True),
    Column("pwd", String(255), nullable=False),
    Column("create_date", DateTime, server_default=func.current_timestamp()),
    Column("created_by", String(50), nullable=False),
    Column("write_date", DateTime),
    Column("update_by", String(50)),
    Column("active", Boolean, nullable=False, server_default=true()),
)

user_login = Table(
    "user_login",
    metadata,
    Column("username", String(50), primary_key=True),
    Column("token", String(512)),
    Column("created_datetime", DateTime, nullable=False),
    Column("expire_datetime", DateTime, nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. In-memory databases ignore it.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Create the pooled Engine and make sure both tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into the auth error taxonomy.

    IntegrityError becomes DuplicateUser (the only constraints we declare are
    uniqueness constraints); everything else becomes StorageError.
    """
    try:
        yield
    except IntegrityError as exc:
        raise DuplicateUser(f"{operation}: unique constraint violated") from exc
    except SQLAlchemyError as exc:
        logger.error("Storage failure during %s: %s", operation, exc.__class__.__name__)
        raise StorageError(operation, exc.__class__.__name__) from exc
