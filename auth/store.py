"""
auth/store.py -- SQLAlchemy Core repository for the users table.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and service code never touches SQL directly.

UserStore never hashes anything: callers hand it an already-encoded pwd
produced by auth.passwords.PasswordHasher.

Security:
  All queries use bound parameters. No f-strings in SQL.

Errors: every method runs inside storage_errors(), so callers see
StorageError / DuplicateUser, never raw SQLAlchemy exceptions.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from auth.models import User
from auth.schema import storage_errors, users, utcnow

# Columns a PUT /users/{id} may change. pwd goes through update_password().
_PROFILE_FIELDS = frozenset({"username", "name", "surname", "phone", "email", "active"})


class UserStore:
    """Repository for User rows.

    Usage:
        store = UserStore(create_db_engine("sqlite:///bookapp.db"))
        uid = store.create_user(User(username="alice", ..., pwd=encoded))
        user = store.get_by_username("alice")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with storage_errors("has_users"), self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(users)).scalar()
        return (count or 0) > 0

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with storage_errors("get_by_username"), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with storage_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with storage_errors("list_users"), self.engine.connect() as conn:
            rows = conn.execute(users.select().order_by(users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def ping(self) -> bool:
        """Cheap connectivity probe for the health endpoint."""
        with storage_errors("ping"), self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateUser if username, phone or email is already taken.
        """
        with storage_errors("create_user"), self.engine.begin() as conn:
            result = conn.execute(
                users.insert().values(
                    username=user.username,
                    name=user.name,
                    surname=user.surname,
                    phone=user.phone,
                    email=user.email,
                    pwd=user.pwd,
                    create_date=utcnow(),
                    created_by=user.created_by,
                    active=user.active,
                )
            )
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, update_by: str, **fields) -> bool:
        """Update profile fields on an existing user.

        Accepted fields: username, name, surname, phone, email, active.
        Unknown keys raise ValueError -- pwd in particular must go through
        update_password(). Returns True if a row was updated.
        """
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        with storage_errors("update_user"), self.engine.begin() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(**fields, update_by=update_by, write_date=utcnow())
            )
        return result.rowcount > 0

    def update_password(self, user_id: int, pwd: str, update_by: str) -> bool:
        """Replace the stored hash. Used for password changes and rehash-on-login."""
        with storage_errors("update_password"), self.engine.begin() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(pwd=pwd, update_by=update_by, write_date=utcnow())
            )
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        with storage_errors("delete_user"), self.engine.begin() as conn:
            result = conn.execute(users.delete().where(users.c.id == user_id))
        return result.rowcount > 0

    def delete_users(self, user_ids: Iterable[int]) -> int:
        """Delete every user whose id is in user_ids. Returns the number removed."""
        ids = list(user_ids)
        if not ids:
            return 0
        with storage_errors("delete_users"), self.engine.begin() as conn:
            result = conn.execute(users.delete().where(users.c.id.in_(ids)))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        name=row.name,
        surname=row.surname,
        phone=row.phone,
        email=row.email,
        pwd=row.pwd,
        create_date=row.create_date,
        created_by=row.created_by,
        write_date=row.write_date,
        update_by=row.update_by,
        active=bool(row.active),
    )
