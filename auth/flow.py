"""
auth/flow.py -- Register / login / logout / me orchestration.

AuthFlowController is constructed once at startup with its collaborators and
an explicit AuthConfig; it never reads the environment itself.

Login classification (exactly one ledger entry per call):

  email or password missing         -> user_not_found   400 ValidationError
  no account for the email          -> user_not_found   401 generic message
  account found, is_active False    -> account_deactivated  401 specific message
  account active, password mismatch -> wrong_password   401 generic message
  password matches                  -> success          200

The generic 401 message is identical for "no such user" and "wrong password"
so a caller cannot probe which emails are registered. The ledger still
records the precise cause; the audit trail carries more detail than the
response.

If something unexpected blows up before the entry is written, the controller
writes a user_not_found failure for the request and raises InternalError, so
the one-entry-per-request rule holds on the error path too.

Layer rule: no imports from api/. Imports ledger/ (write side only).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from auth.errors import AuthenticationError, AuthServiceError, InternalError, ValidationError
from auth.models import User
from auth.store import UserStore
from auth.tokens import AuthConfig, create_access_token, equalize_timing, password_fingerprint
from auth.validation import normalize_email
from ledger.models import ACCOUNT_DEACTIVATED, MISSING_EMAIL, USER_NOT_FOUND, WRONG_PASSWORD, LoginAttempt
from ledger.store import LedgerStore

logger = logging.getLogger("authledger.auth")

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_DEACTIVATED_MESSAGE = "Account is deactivated. Please contact support."
MISSING_CREDENTIALS = "Please provide email and password"


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata copied onto every ledger entry."""

    ip_address: str = "unknown"
    user_agent: str = ""
    country: str = ""


class AuthFlowController:
    def __init__(self, users: UserStore, ledger: LedgerStore, config: AuthConfig) -> None:
        self.users = users
        self.ledger = ledger
        self.config = config

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def issue_token(self, user: User) -> str:
        return create_access_token(self.config, user.id, user.email, user.role)

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, fields: Mapping[str, object]) -> tuple[User, str]:
        """Create an account and return it with a fresh token.

        ValidationError and ConflictError from the store pass straight through.
        Anything else is logged and becomes InternalError.
        """
        try:
            user = self.users.create(fields)
            return user, self.issue_token(user)
        except AuthServiceError:
            raise
        except Exception as exc:
            logger.exception("Registration failed unexpectedly")
            raise InternalError("Server error during registration") from exc

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: object, password: object, client: ClientInfo) -> tuple[User, str]:
        """Authenticate, write one ledger entry, and return (user, token) on success.

        email and password arrive straight from the request body. Anything
        that is not a string counts as missing.
        """
        email = email if isinstance(email, str) else None
        password = password if isinstance(password, str) else None
        normalized = normalize_email(email) if email else ""
        recorded = False
        try:
            if not normalized or not password:
                self._record(client, normalized or MISSING_EMAIL, password, USER_NOT_FOUND)
                recorded = True
                raise ValidationError(MISSING_CREDENTIALS)

            user = self.users.find_by_email(normalized, with_password=True)
            if user is None:
                # Same bcrypt cost as a real check [C1]
                equalize_timing(password, self.users.bcrypt_rounds)
                self._record(client, normalized, password, USER_NOT_FOUND)
                recorded = True
                raise AuthenticationError(INVALID_CREDENTIALS, code="bad_credentials")

            if not user.is_active:
                self._record(client, normalized, password, ACCOUNT_DEACTIVATED, user_id=user.id)
                recorded = True
                raise AuthenticationError(ACCOUNT_DEACTIVATED_MESSAGE, code="account_deactivated")

            if not self.users.verify_password(user, password):
                self._record(client, normalized, password, WRONG_PASSWORD, user_id=user.id)
                recorded = True
                raise AuthenticationError(INVALID_CREDENTIALS, code="bad_credentials")

            self._record(client, normalized, password, None, user_id=user.id)
            recorded = True
            user.last_login = self.users.update_last_login(user.id)
            user.hashed_password = None
            logger.info("Login succeeded user_id=%d ip=%s", user.id, client.ip_address)
            return user, self.issue_token(user)
        except AuthServiceError:
            raise
        except Exception as exc:
            logger.exception("Login failed unexpectedly ip=%s", client.ip_address)
            if not recorded:
                self._record(client, normalized or MISSING_EMAIL, password, USER_NOT_FOUND)
            raise InternalError("Server error during login") from exc

    def _record(
        self,
        client: ClientInfo,
        email: str,
        password: str | None,
        failure_reason: str | None,
        user_id: int | None = None,
    ) -> None:
        success = failure_reason is None
        if not success:
            logger.warning("Login failed email=%s reason=%s ip=%s", email, failure_reason, client.ip_address)
        self.ledger.record(
            LoginAttempt(
                email=email,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                success=success,
                failure_reason=failure_reason,
                password_provided=bool(password),
                password_fingerprint=password_fingerprint(self.config, password),
                user_id=user_id,
                country=client.country,
            )
        )

    # ------------------------------------------------------------------
    # Logout / me
    # ------------------------------------------------------------------

    def logout(self, user: User | None) -> None:
        """Nothing to revoke server-side; the route expires the cookie."""
        if user is not None:
            logger.info("Logout user_id=%d", user.id)

    def me(self, user_id: int) -> User:
        """Return the public profile of an authenticated user."""
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("Authentication required.")
        return user
