"""
ledger/models.py -- Domain dataclasses for the login-attempt ledger.

These are pure data containers with zero logic. Classification happens in
auth/flow.py; persistence and invariant checks live in ledger/store.py;
aggregation lives in ledger/stats.py.
"""

from __future__ import annotations

from dataclasses import dataclass

USER_NOT_FOUND = "user_not_found"
WRONG_PASSWORD = "wrong_password"
ACCOUNT_DEACTIVATED = "account_deactivated"

FAILURE_REASONS = (USER_NOT_FOUND, WRONG_PASSWORD, ACCOUNT_DEACTIVATED)

# Recorded in place of the email when a login request omitted it.
MISSING_EMAIL = "missing_email"


@dataclass
class LoginAttempt:
    """Immutable audit entry for one authentication attempt.

    The submitted password is never stored. password_provided says whether
    one was sent; password_fingerprint is a truncated keyed HMAC of it (see
    auth.tokens.password_fingerprint), None when no password was sent.

    failure_reason is set if and only if success is False.
    user_id is a weak reference: it is None when the email matched no account
    and is not a foreign key, so it outlives the user it points at.

    id and created_at are None before the record is written.
    """

    email: str
    ip_address: str
    success: bool
    failure_reason: str | None = None  # one of FAILURE_REASONS, None on success
    user_agent: str = ""
    password_provided: bool = False
    password_fingerprint: str | None = None
    user_id: int | None = None
    country: str = ""
    created_at: str | None = None  # ISO 8601 UTC, set by the store on insert
    id: int | None = None


@dataclass(frozen=True)
class LoginStats:
    """Aggregate view over the whole ledger. success_rate is a percentage."""

    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    success_rate: float
    today_attempts: int
    unique_ips: int
    unique_emails: int
