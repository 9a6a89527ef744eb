"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as ledger/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and controller code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is a UNIQUE constraint on the lowercased email column.
  create() inserts unconditionally and turns IntegrityError into
  ConflictError, so two concurrent registrations for the same address cannot
  both succeed.

  hashed_password is left out of the default projection (_PUBLIC_COLUMNS).
  It is only selected when a caller passes with_password=True.

DB path: auth/authledger_auth.db by default.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError
from auth.models import ROLES, User
from auth.tokens import hash_password
from auth.tokens import verify_password as _check_password
from auth.validation import normalize_email, validate_registration
from core.db import make_engine

logger = logging.getLogger("authledger.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'authledger_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # lowercased on write
    Column("hashed_password", Text, nullable=False),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("date_of_birth", String(10), nullable=False),  # YYYY-MM-DD
    Column("gender", String(20), nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login", String(32)),  # ISO 8601 timestamp of last successful login
)

_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "hashed_password"]

# Fields save() and update_user() may write. email and hashed_password never
# change after registration.
_MUTABLE_FIELDS = {"first_name", "last_name", "date_of_birth", "gender", "role", "is_active", "last_login"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities -- the credential store.

    Usage:
        store = UserStore()
        user = store.create({"email": "a@x.com", "password": "secret1", ...})
        same = store.find_by_email("A@X.com")
        store.verify_password(same, "secret1")  # True
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, bcrypt_rounds: int = 12, timeout: float = 5.0) -> None:
        self.bcrypt_rounds = bcrypt_rounds
        self.engine: Engine = make_engine(db_url or _DEFAULT_DB_URL, timeout)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select(self, with_password: bool):
        return select(*_users.c) if with_password else select(*_PUBLIC_COLUMNS)

    def find_by_email(self, email: str, with_password: bool = False) -> User | None:
        """Look up a user by email, case-insensitively. Returns None if not found."""
        stmt = self._select(with_password).where(_users.c.email == normalize_email(email))
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int, with_password: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        stmt = self._select(with_password).where(_users.c.id == user_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        """Return {id: User} for every id that exists. One query, no password column."""
        ids = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(select(*_PUBLIC_COLUMNS).where(_users.c.id.in_(ids))).fetchall()
        return {row.id: _row_to_user(row) for row in rows}

    def list_users(self) -> list[User]:
        """Return all users ordered by email. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(*_PUBLIC_COLUMNS).order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_active_admins(self) -> int:
        """Return the number of active admin users.

        Used by PATCH /auth/users/{id} to prevent deactivating the last admin [M4].
        """
        stmt = select(func.count()).select_from(_users).where((_users.c.role == "admin") & (_users.c.is_active == 1))
        with self.engine.connect() as conn:
            result = conn.execute(stmt).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields: Mapping[str, object], role: str = "user") -> User:
        """Validate registration fields, hash the password and insert the user.

        Raises auth.errors.ValidationError for missing or malformed fields and
        auth.errors.ConflictError when the email is already registered. The
        conflict comes from the UNIQUE constraint, not from a prior lookup.
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        registration = validate_registration(fields)
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=registration.email,
                        hashed_password=hash_password(registration.password, rounds=self.bcrypt_rounds),
                        first_name=registration.first_name,
                        last_name=registration.last_name,
                        date_of_birth=registration.date_of_birth,
                        gender=registration.gender,
                        role=role,
                        created_at=created_at,
                        is_active=1,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("User already exists with this email address") from exc
        user_id = result.inserted_primary_key[0]
        logger.info("User registered id=%d role=%s", user_id, role)
        return User(
            id=user_id,
            email=registration.email,
            first_name=registration.first_name,
            last_name=registration.last_name,
            date_of_birth=registration.date_of_birth,
            gender=registration.gender,
            role=role,
            is_active=True,
            created_at=created_at,
        )

    def save(self, user: User) -> bool:
        """Persist the mutable fields of an existing user.

        Returns True if a row was updated, False if user.id was not found.
        """
        if user.id is None:
            raise ValueError("Cannot save a user that has no id")
        return self.update_user(
            user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            date_of_birth=user.date_of_birth,
            gender=user.gender,
            role=user.role,
            is_active=user.is_active,
            last_login=user.last_login,
        )

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: see _MUTABLE_FIELDS. is_active must be passed as
        bool; this method converts to int for SQLite.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "role" in fields and fields["role"] not in ROLES:
            raise ValueError(f"Unknown role: {fields['role']!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> str:
        """Stamp the current UTC timestamp as last_login and return it.

        Called only on a successful password login. Failed attempts never
        reach this method, so they leave the user row untouched.
        """
        stamp = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=stamp))
            conn.commit()
        return stamp

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def verify_password(self, user: User, plaintext: str) -> bool:
        """Compare plaintext against the user's stored bcrypt hash.

        If the user was loaded without the hash, it is fetched here; the hash
        is never attached to the caller's object.
        """
        hashed = user.hashed_password
        if hashed is None and user.id is not None:
            with self.engine.connect() as conn:
                hashed = conn.execute(select(_users.c.hashed_password).where(_users.c.id == user.id)).scalar()
        if hashed is None:
            return False
        return _check_password(plaintext, hashed)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(select(1)).scalar() == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # hashed_password is only present when the caller selected it.
    return User(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        date_of_birth=row.date_of_birth,
        gender=row.gender,
        role=row.role,
        hashed_password=getattr(row, "hashed_password", None),
        is_active=bool(row.is_active),
        created_at=row.created_at,
        last_login=row.last_login,
    )
