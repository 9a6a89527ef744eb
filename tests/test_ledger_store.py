"""Unit tests for ledger/store.py -- the append-only login-attempt ledger.

Covers:
- record() returns the new id and stores a lowercased email
- record() refuses classification violations without raising
- record() swallows storage failures and logs them
- listings are newest-first, ties broken by insertion order
- listings never exceed 1000 / 500 / 100, and limit only narrows
- list_by_email() is case-insensitive; list_failed() returns failures only
- count() / count_distinct() primitives
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import insert

from ledger.models import ACCOUNT_DEACTIVATED, USER_NOT_FOUND, WRONG_PASSWORD, LoginAttempt
from ledger.store import LIST_ALL_CAP, LIST_BY_EMAIL_CAP, LIST_FAILED_CAP, LedgerStore, _attempts


@pytest.fixture
def ledger():
    store = LedgerStore("sqlite:///:memory:")
    yield store
    store.close()


def _attempt(email="a@example.com", ip="10.0.0.1", success=False, reason=WRONG_PASSWORD, **kw) -> LoginAttempt:
    return LoginAttempt(
        email=email, ip_address=ip, success=success, failure_reason=None if success else reason, **kw
    )


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="microseconds")


def _bulk_insert(store: LedgerStore, n: int, success: bool = False, email: str = "bulk@example.com") -> None:
    """Insert n rows in one statement; record() one-by-one is needlessly slow for cap tests."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        {
            "email": email,
            "password_provided": 1,
            "ip_address": f"10.1.{i // 250}.{i % 250}",
            "user_agent": "",
            "success": 1 if success else 0,
            "failure_reason": None if success else WRONG_PASSWORD,
            "country": "",
            "created_at": _iso(base + timedelta(seconds=i)),
        }
        for i in range(n)
    ]
    with store.engine.connect() as conn:
        conn.execute(insert(_attempts), rows)
        conn.commit()


# ---------------------------------------------------------------------------
# record()
# ---------------------------------------------------------------------------


def test_record_returns_id_and_normalizes_email(ledger):
    new_id = ledger.record(_attempt(email="  Mixed@Example.COM", user_agent="curl/8"))
    assert isinstance(new_id, int)

    [stored] = ledger.list_all()
    assert stored.id == new_id
    assert stored.email == "mixed@example.com"
    assert stored.user_agent == "curl/8"
    assert stored.created_at


def test_record_keeps_fingerprint_not_password(ledger):
    ledger.record(_attempt(password_provided=True, password_fingerprint="0123456789abcdef"))
    [stored] = ledger.list_all()
    assert stored.password_provided is True
    assert stored.password_fingerprint == "0123456789abcdef"
    assert not hasattr(stored, "password")


def test_success_with_reason_is_refused(ledger, caplog):
    bad = LoginAttempt(email="a@example.com", ip_address="1.1.1.1", success=True, failure_reason=WRONG_PASSWORD)
    with caplog.at_level(logging.ERROR, logger="authledger.ledger"):
        assert ledger.record(bad) is None
    assert ledger.count() == 0
    assert "Failed to record login attempt" in caplog.text


@pytest.mark.parametrize("reason", [None, "locked_out"])
def test_failure_needs_known_reason(ledger, reason):
    bad = LoginAttempt(email="a@example.com", ip_address="1.1.1.1", success=False, failure_reason=reason)
    assert ledger.record(bad) is None
    assert ledger.count() == 0


def test_storage_failure_is_swallowed_and_logged(ledger, caplog):
    _attempts.drop(ledger.engine)
    with caplog.at_level(logging.ERROR, logger="authledger.ledger"):
        result = ledger.record(_attempt())
    assert result is None
    assert "Failed to record login attempt" in caplog.text


def test_user_agent_truncated(ledger):
    ledger.record(_attempt(user_agent="x" * 2000))
    [stored] = ledger.list_all()
    assert len(stored.user_agent) == 512


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def test_lists_are_newest_first(ledger):
    now = datetime.now(timezone.utc)
    ledger.record(_attempt(email="old@example.com", created_at=_iso(now - timedelta(hours=2))))
    ledger.record(_attempt(email="new@example.com", created_at=_iso(now)))
    ledger.record(_attempt(email="mid@example.com", created_at=_iso(now - timedelta(hours=1))))

    emails = [a.email for a in ledger.list_all()]
    assert emails == ["new@example.com", "mid@example.com", "old@example.com"]


def test_ties_broken_by_insertion_order(ledger):
    stamp = _iso(datetime.now(timezone.utc))
    first = ledger.record(_attempt(email="first@example.com", created_at=stamp))
    second = ledger.record(_attempt(email="second@example.com", created_at=stamp))

    ids = [a.id for a in ledger.list_all()]
    assert ids == [second, first]


# ---------------------------------------------------------------------------
# Caps and filters
# ---------------------------------------------------------------------------


def test_list_all_capped_at_1000(ledger):
    _bulk_insert(ledger, LIST_ALL_CAP + 5)
    attempts = ledger.list_all()
    assert len(attempts) == LIST_ALL_CAP
    # The five oldest rows are the ones cut
    assert attempts[-1].created_at == _iso(datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=5))


def test_requested_limit_cannot_exceed_cap(ledger):
    _bulk_insert(ledger, LIST_FAILED_CAP + 10)
    assert len(ledger.list_failed(limit=10_000)) == LIST_FAILED_CAP
    assert len(ledger.list_all(limit=None)) == LIST_FAILED_CAP + 10
    assert len(ledger.list_failed(limit=7)) == 7


def test_list_by_email_capped_and_case_insensitive(ledger):
    _bulk_insert(ledger, LIST_BY_EMAIL_CAP + 20, email="target@example.com")
    ledger.record(_attempt(email="other@example.com"))

    attempts = ledger.list_by_email("TARGET@example.com")
    assert len(attempts) == LIST_BY_EMAIL_CAP
    assert {a.email for a in attempts} == {"target@example.com"}


def test_list_failed_excludes_successes(ledger):
    ledger.record(_attempt(success=True))
    ledger.record(_attempt(reason=USER_NOT_FOUND))
    ledger.record(_attempt(reason=ACCOUNT_DEACTIVATED))

    failed = ledger.list_failed()
    assert len(failed) == 2
    assert all(not a.success and a.failure_reason for a in failed)


# ---------------------------------------------------------------------------
# Aggregate primitives
# ---------------------------------------------------------------------------


def test_count_filters(ledger):
    now = datetime.now(timezone.utc)
    ledger.record(_attempt(success=True, created_at=_iso(now - timedelta(days=3))))
    ledger.record(_attempt())
    ledger.record(_attempt())

    assert ledger.count() == 3
    assert ledger.count(success=True) == 1
    assert ledger.count(success=False) == 2
    assert ledger.count(since=_iso(now - timedelta(days=1))) == 2


def test_count_distinct(ledger):
    ledger.record(_attempt(email="a@example.com", ip="1.1.1.1"))
    ledger.record(_attempt(email="A@example.com", ip="1.1.1.1"))
    ledger.record(_attempt(email="b@example.com", ip="2.2.2.2"))

    assert ledger.count_distinct("email") == 2
    assert ledger.count_distinct("ip_address") == 2


def test_count_distinct_rejects_other_columns(ledger):
    with pytest.raises(ValueError):
        ledger.count_distinct("user_agent")
