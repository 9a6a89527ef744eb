"""
auth/tokens.py -- JWT, password hashing, and password fingerprint utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with AuthConfig.secret and
       carry user_id, email (sub), role, and expiry. Verification returns None
       on any failure -- the dependency layer turns that into a 401.

  Passwords: bcrypt, used directly. The dummy hash used by
       equalize_timing() makes a login for an unknown email cost the same as
       one for a real account, so response time does not reveal whether an
       email is registered [C1].

  Ledger fingerprint: the ledger never stores a submitted password. It stores
       the first 16 hex chars of HMAC-SHA256(secret, password), which lets an
       operator see that the same guess was replayed across accounts without
       being able to recover it.

  Configuration: every function that needs the signing key takes an AuthConfig
       argument. Nothing here reads the environment; AuthConfig.from_settings()
       is the one bridge to core.config.

Layer rule: no imports from api/ or ledger/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from core.config import Settings


_ALGORITHM = "HS256"

AUTH_COOKIE_NAME = "access_token"
DEFAULT_EXPIRES_IN = 7 * 24 * 60 * 60
FINGERPRINT_LENGTH = 16


@dataclass(frozen=True)
class AuthConfig:
    """Explicit token configuration handed to the flow controller.

    secret:         HS256 signing key (also keys the ledger fingerprint).
    expires_in:     token and cookie lifetime in seconds.
    secure_cookies: mark the auth cookie Secure (HTTPS only).
    """

    secret: str
    expires_in: int = DEFAULT_EXPIRES_IN
    secure_cookies: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        return cls(
            secret=settings.secret_key,
            expires_in=settings.token_expire_seconds,
            secure_cookies=settings.secure_cookies,
        )


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt silently ignores bytes past 72; auth.validation rejects longer
    passwords at registration.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not plain or not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage or a >72 byte password on bcrypt>=4.1
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password("authledger_timing_dummy", rounds=rounds)


def equalize_timing(plain: str, rounds: int = 12) -> None:
    """Burn one bcrypt check against a dummy hash of the same cost [C1].

    Call this on the unknown-email path so it takes as long as a real
    password comparison.
    """
    verify_password(plain or "x", _dummy_hash(rounds))


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(config: AuthConfig, user_id: int, email: str, role: str) -> str:
    """Encode a signed JWT with user identity and config.expires_in lifetime."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=config.expires_in)
    payload = {
        "sub": email,
        "user_id": user_id,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, config.secret, algorithm=_ALGORITHM)


def decode_access_token(config: AuthConfig, token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired tokens fail signature-time validation inside jose and land in the
    JWTError branch like any other bad token.
    """
    try:
        payload = jwt.decode(token, config.secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "user_id" not in payload or "role" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Ledger fingerprint
# ---------------------------------------------------------------------------


def password_fingerprint(config: AuthConfig, plain: str | None) -> str | None:
    """Return a truncated HMAC-SHA256 of the submitted password, or None if absent."""
    if not plain:
        return None
    digest = hmac.new(config.secret.encode(), plain.encode("utf-8"), hashlib.sha256).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, config: AuthConfig) -> None:
    """Write the JWT access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=config.secure_cookies,
        max_age=config.expires_in,
    )


def clear_auth_cookie(response, config: AuthConfig) -> None:
    """Expire the auth cookie immediately. Attributes must match set_auth_cookie."""
    response.delete_cookie(
        AUTH_COOKIE_NAME,
        httponly=True,
        samesite="strict",
        secure=config.secure_cookies,
    )
