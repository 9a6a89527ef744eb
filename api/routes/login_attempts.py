"""
api/routes/login_attempts.py -- Read-only views over the login-attempt ledger.

Routes:
  GET /login-attempts/all               -- newest attempts, at most 1000
  GET /login-attempts/by-email/{email}  -- newest attempts for one email, at most 100
  GET /login-attempts/failed            -- newest failed attempts, at most 500
  GET /login-attempts/stats             -- aggregate statistics

The caps are enforced by LedgerStore. ?limit= can only narrow a listing.

Each attempt is returned with a summary of the account it matched. Users are
resolved in one batched query per listing, not one per row.
"""

from fastapi import APIRouter, Depends, Query, Request

from api.limiter import limiter
from api.models import AttemptListResponse, LoginAttemptRow, StatsBody, StatsResponse
from auth.dependencies import require_admin
from auth.store import UserStore
from ledger.models import LoginAttempt
from ledger.stats import compute_stats
from ledger.store import LIST_ALL_CAP, LIST_BY_EMAIL_CAP, LIST_FAILED_CAP, LedgerStore

# Auth policy:
# - every route: requires admin -- the ledger is audit data.
# Router-level dependency enforces the role check; handlers do not repeat it.
router = APIRouter(prefix="/login-attempts", dependencies=[Depends(require_admin)])


def _to_response(request: Request, attempts: list[LoginAttempt]) -> AttemptListResponse:
    user_store: UserStore = request.app.state.user_store
    users = user_store.find_many(a.user_id for a in attempts)
    rows = [LoginAttemptRow.from_attempt(a, users.get(a.user_id)) for a in attempts]
    return AttemptListResponse(count=len(rows), attempts=rows)


@router.get("/all", response_model=AttemptListResponse)
@limiter.limit("60/minute")
def list_all(request: Request, limit: int = Query(default=LIST_ALL_CAP, ge=1)) -> AttemptListResponse:
    """Return the most recent attempts of any outcome, newest first."""
    ledger: LedgerStore = request.app.state.ledger
    return _to_response(request, ledger.list_all(limit))


@router.get("/by-email/{email}", response_model=AttemptListResponse)
@limiter.limit("60/minute")
def list_by_email(
    request: Request, email: str, limit: int = Query(default=LIST_BY_EMAIL_CAP, ge=1)
) -> AttemptListResponse:
    """Return the most recent attempts for one email, newest first. Case-insensitive."""
    ledger: LedgerStore = request.app.state.ledger
    return _to_response(request, ledger.list_by_email(email, limit))


@router.get("/failed", response_model=AttemptListResponse)
@limiter.limit("60/minute")
def list_failed(request: Request, limit: int = Query(default=LIST_FAILED_CAP, ge=1)) -> AttemptListResponse:
    """Return the most recent failed attempts, newest first."""
    ledger: LedgerStore = request.app.state.ledger
    return _to_response(request, ledger.list_failed(limit))


@router.get("/stats", response_model=StatsResponse)
@limiter.limit("60/minute")
def stats(request: Request) -> StatsResponse:
    """Return ledger statistics, recomputed from the full history on every call.

    Response:
      total_attempts / successful_attempts / failed_attempts
      success_rate   -- percentage, 2 decimals, 0 when there are no attempts
      today_attempts -- since local server midnight
      unique_ips / unique_emails -- distinct values over all time
    """
    ledger: LedgerStore = request.app.state.ledger
    return StatsResponse(stats=StatsBody.from_stats(compute_stats(ledger)))
