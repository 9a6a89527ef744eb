"""
ledger/store.py -- SQLAlchemy Core persistence layer for the login-attempt ledger.

Uses SQLAlchemy Core (not ORM) so the dataclasses in ledger/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. LedgerStore is the repository;
_row_to_attempt is the mapper.

Append-only: the repository exposes no update or delete. Rows are written
once by record() and only ever read afterwards.

Fire-and-forget writes: record() must not change the outcome of the login
request that triggered it. Any failure -- invariant violation, storage error,
timeout -- is logged with the full traceback and swallowed; record() then
returns None instead of the new row id.

Ordering: every list is newest-first on created_at, with id (insertion order)
as the tie-breaker. created_at is written with fixed microsecond precision so
string order equals time order.

Caps: list_all / list_failed / list_by_email never return more than
1000 / 500 / 100 rows. A larger requested limit is clamped, not rejected.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    ledger = LedgerStore()                                # SQLite default
    ledger = LedgerStore("postgresql://user:pw@host/db")  # PostgreSQL
    ledger.record(LoginAttempt(email="a@x.com", ip_address="10.0.0.1", success=True))
    recent = ledger.list_failed()
    ledger.close()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, func, select
from sqlalchemy.engine import Engine

from core.db import make_engine
from ledger.models import FAILURE_REASONS, LoginAttempt

logger = logging.getLogger("authledger.ledger")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'authledger_ledger.db'}"

LIST_ALL_CAP = 1000
LIST_FAILED_CAP = 500
LIST_BY_EMAIL_CAP = 100

_MAX_EMAIL = 255
_MAX_USER_AGENT = 512

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_attempts = Table(
    "login_attempts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(_MAX_EMAIL), nullable=False),  # lowercased, or the missing_email sentinel
    Column("password_provided", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("password_fingerprint", String(16)),  # truncated HMAC, never the password
    Column("ip_address", String(64), nullable=False),
    Column("user_agent", String(_MAX_USER_AGENT), nullable=False, server_default=""),
    Column("success", Integer, nullable=False),  # boolean stored as 0/1
    Column("failure_reason", String(30)),  # NULL iff success
    Column("user_id", Integer),  # weak reference to users.id, no FK
    Column("country", String(64), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
    Index("ix_login_attempts_email_created", "email", "created_at"),
    Index("ix_login_attempts_ip_created", "ip_address", "created_at"),
    Index("ix_login_attempts_success_created", "success", "created_at"),
)

_DISTINCT_COLUMNS = {"email", "ip_address"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _check_classification(attempt: LoginAttempt) -> None:
    """Raise ValueError unless failure_reason is set iff the attempt failed."""
    if attempt.success:
        if attempt.failure_reason is not None:
            raise ValueError(f"Successful attempt cannot carry failure_reason={attempt.failure_reason!r}")
    elif attempt.failure_reason not in FAILURE_REASONS:
        raise ValueError(f"Failed attempt needs a failure_reason, got {attempt.failure_reason!r}")


def _clamp(limit: int | None, cap: int) -> int:
    if limit is None or limit > cap:
        return cap
    return max(limit, 0)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LedgerStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = 5.0) -> None:
        self.engine: Engine = make_engine(db_url or _DEFAULT_DB_URL, timeout)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def record(self, attempt: LoginAttempt) -> int | None:
        """Append one attempt. Returns the new id, or None if the write failed.

        Never raises. The caller's response must not depend on whether the
        audit write succeeded.
        """
        try:
            _check_classification(attempt)
            with self.engine.connect() as conn:
                result = conn.execute(
                    _attempts.insert().values(
                        email=attempt.email.strip().lower()[:_MAX_EMAIL],
                        password_provided=1 if attempt.password_provided else 0,
                        password_fingerprint=attempt.password_fingerprint,
                        ip_address=attempt.ip_address,
                        user_agent=(attempt.user_agent or "")[:_MAX_USER_AGENT],
                        success=1 if attempt.success else 0,
                        failure_reason=attempt.failure_reason,
                        user_id=attempt.user_id,
                        country=attempt.country or "",
                        created_at=attempt.created_at or _now_iso(),
                    )
                )
                conn.commit()
            return result.inserted_primary_key[0]
        except Exception:
            logger.exception(
                "Failed to record login attempt email=%s ip=%s success=%s reason=%s",
                attempt.email,
                attempt.ip_address,
                attempt.success,
                attempt.failure_reason,
            )
            return None

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def _list(self, where, limit: int) -> list[LoginAttempt]:
        stmt = _attempts.select()
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(_attempts.c.created_at.desc(), _attempts.c.id.desc()).limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_attempt(r) for r in rows]

    def list_all(self, limit: int | None = LIST_ALL_CAP) -> list[LoginAttempt]:
        """Return the newest attempts of any outcome, at most 1000."""
        return self._list(None, _clamp(limit, LIST_ALL_CAP))

    def list_by_email(self, email: str, limit: int | None = LIST_BY_EMAIL_CAP) -> list[LoginAttempt]:
        """Return the newest attempts for one email (case-insensitive), at most 100."""
        return self._list(_attempts.c.email == email.strip().lower(), _clamp(limit, LIST_BY_EMAIL_CAP))

    def list_failed(self, limit: int | None = LIST_FAILED_CAP) -> list[LoginAttempt]:
        """Return the newest failed attempts, at most 500."""
        return self._list(_attempts.c.success == 0, _clamp(limit, LIST_FAILED_CAP))

    # ------------------------------------------------------------------
    # Aggregate primitives (see ledger/stats.py)
    # ------------------------------------------------------------------

    def count(self, success: bool | None = None, since: str | None = None) -> int:
        """Count attempts, optionally filtered by outcome and a created_at lower bound.

        since is an ISO 8601 UTC string in the same format the store writes.
        """
        stmt = select(func.count()).select_from(_attempts)
        if success is not None:
            stmt = stmt.where(_attempts.c.success == (1 if success else 0))
        if since is not None:
            stmt = stmt.where(_attempts.c.created_at >= since)
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    def count_distinct(self, column: str) -> int:
        """Count distinct values of "email" or "ip_address" over the whole ledger."""
        if column not in _DISTINCT_COLUMNS:
            raise ValueError(f"count_distinct supports {sorted(_DISTINCT_COLUMNS)}, got {column!r}")
        stmt = select(func.count(func.distinct(_attempts.c[column])))
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_attempt(row) -> LoginAttempt:
    return LoginAttempt(
        id=row.id,
        email=row.email,
        password_provided=bool(row.password_provided),
        password_fingerprint=row.password_fingerprint,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        success=bool(row.success),
        failure_reason=row.failure_reason,
        user_id=row.user_id,
        country=row.country,
        created_at=row.created_at,
    )
