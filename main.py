#!/usr/bin/env python3
"""
AuthLedger -- operator command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py make-admin alice@example.com
  python main.py stats
  python main.py attempts [--email alice@example.com] [--failed] [--limit 20]

The admin-only HTTP endpoints need at least one admin; make-admin promotes an
already-registered account. All commands read the same environment as the
server (SECRET_KEY, AUTH_DB_URL, LEDGER_DB_URL, ...).
"""

import argparse
import logging
import sys

from core.config import get_settings

logger = logging.getLogger("authledger.cli")


def _open_user_store():
    from auth.store import UserStore

    settings = get_settings()
    return UserStore(
        db_url=settings.auth_db_url,
        bcrypt_rounds=settings.bcrypt_rounds,
        timeout=settings.db_timeout_seconds,
    )


def _open_ledger():
    from ledger.store import LedgerStore

    settings = get_settings()
    return LedgerStore(db_url=settings.ledger_db_url, timeout=settings.db_timeout_seconds)


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_make_admin(args: argparse.Namespace) -> int:
    """Promote a registered user to admin by email (bootstrap)."""
    store = _open_user_store()
    try:
        user = store.find_by_email(args.email)
        if user is None:
            print(f"  [!] No user registered with email {args.email!r}.")
            return 1
        if user.role == "admin":
            print(f"  {user.email} is already an admin.")
            return 0
        store.update_user(user.id, role="admin")
        logger.info("Promoted user_id=%d to admin", user.id)
        print(f"  {user.email} promoted to admin.")
        return 0
    finally:
        store.close()


def cmd_stats(args: argparse.Namespace) -> int:
    from ledger.stats import compute_stats

    ledger = _open_ledger()
    try:
        stats = compute_stats(ledger)
    finally:
        ledger.close()
    print(f"  Total attempts      {stats.total_attempts}")
    print(f"  Successful          {stats.successful_attempts}")
    print(f"  Failed              {stats.failed_attempts}")
    print(f"  Success rate        {stats.success_rate:.2f}%")
    print(f"  Today               {stats.today_attempts}")
    print(f"  Unique IPs          {stats.unique_ips}")
    print(f"  Unique emails       {stats.unique_emails}")
    return 0


def cmd_attempts(args: argparse.Namespace) -> int:
    ledger = _open_ledger()
    try:
        if args.email:
            attempts = ledger.list_by_email(args.email, args.limit)
        elif args.failed:
            attempts = ledger.list_failed(args.limit)
        else:
            attempts = ledger.list_all(args.limit)
    finally:
        ledger.close()
    if not attempts:
        print("  No login attempts recorded.")
        return 0
    for a in attempts:
        outcome = "OK  " if a.success else "FAIL"
        reason = a.failure_reason or ""
        print(f"  {a.created_at}  {outcome}  {a.ip_address:<15}  {a.email:<32}  {reason}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authledger",
        description="AuthLedger -- authentication service with a login-attempt audit ledger.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=cmd_serve)

    make_admin = sub.add_parser("make-admin", help="Promote a registered user to admin")
    make_admin.add_argument("email")
    make_admin.set_defaults(func=cmd_make_admin)

    stats = sub.add_parser("stats", help="Print login-attempt statistics")
    stats.set_defaults(func=cmd_stats)

    attempts = sub.add_parser("attempts", help="Print recent login attempts, newest first")
    attempts.add_argument("--email", help="Only attempts for this email")
    attempts.add_argument("--failed", action="store_true", help="Only failed attempts")
    attempts.add_argument("--limit", type=int, default=20)
    attempts.set_defaults(func=cmd_attempts)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
