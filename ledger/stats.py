"""
ledger/stats.py -- Statistics over the login-attempt ledger.

Every call recomputes from the full history with a handful of COUNT queries;
nothing is cached or maintained incrementally.
"""

from __future__ import annotations

from datetime import datetime, timezone

from ledger.models import LoginStats
from ledger.store import LedgerStore


def success_rate(successful: int, total: int) -> float:
    """Return successful/total as a percentage rounded to 2 places; 0.0 when total is 0."""
    if total <= 0:
        return 0.0
    return round(successful / total * 100, 2)


def start_of_local_day(now: datetime | None = None) -> datetime:
    """Return local-server midnight of the day containing now, as an aware datetime.

    A naive now is taken to be local time already.
    """
    local = (now or datetime.now()).astimezone()
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_stats(ledger: LedgerStore, now: datetime | None = None) -> LoginStats:
    """Aggregate totals, success rate, today's volume and distinct actors.

    today_attempts counts attempts at or after local midnight. The boundary is
    converted to UTC because the ledger stores UTC timestamps.
    """
    midnight_utc = start_of_local_day(now).astimezone(timezone.utc).isoformat(timespec="microseconds")

    total = ledger.count()
    successful = ledger.count(success=True)
    failed = ledger.count(success=False)

    return LoginStats(
        total_attempts=total,
        successful_attempts=successful,
        failed_attempts=failed,
        success_rate=success_rate(successful, total),
        today_attempts=ledger.count(since=midnight_utc),
        unique_ips=ledger.count_distinct("ip_address"),
        unique_emails=ledger.count_distinct("email"),
    )
