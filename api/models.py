"""
API request and response models for AuthLedger REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
ledger/models.py, which own the internal domain representation. Route
handlers map between the two.

The register body accepts every field as optional: missing fields are a
business-rule failure (400 with one message), not a schema rejection. Login
has no model at all; api/routes/auth.py takes its body as raw JSON so that
every parseable request reaches the ledger.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from ledger.models import LoginAttempt, LoginStats

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register. Field rules live in auth/validation.py."""

    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    date_of_birth: Optional[str] = Field(default=None, max_length=32)
    gender: Optional[str] = Field(default=None, max_length=32)


class UserPatch(BaseModel):
    """Request body for PATCH /auth/users/{id}. At least one field must be set."""

    role: Optional[RoleEnum] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Response models -- users
# ---------------------------------------------------------------------------


class UserProfile(BaseModel):
    """Public view of a User. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    date_of_birth: str
    gender: str
    role: str
    is_active: bool
    created_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            date_of_birth=user.date_of_birth,
            gender=user.gender,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at or "",
            last_login=user.last_login,
        )


class AuthResponse(BaseModel):
    """Response for successful register (201) and login (200)."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile
    message: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserProfile


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Response models -- ledger
# ---------------------------------------------------------------------------


class AttemptUser(BaseModel):
    """The account an attempt matched, resolved at read time."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str


class LoginAttemptRow(BaseModel):
    """One ledger entry as returned by the /login-attempts listings."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    password_provided: bool
    password_fingerprint: Optional[str]
    ip_address: str
    user_agent: str
    success: bool
    failure_reason: Optional[str]
    user_id: Optional[int]
    user: Optional[AttemptUser] = None
    country: str
    created_at: str

    @classmethod
    def from_attempt(cls, attempt: LoginAttempt, user: Optional[User] = None) -> "LoginAttemptRow":
        return cls(
            id=attempt.id,
            email=attempt.email,
            password_provided=attempt.password_provided,
            password_fingerprint=attempt.password_fingerprint,
            ip_address=attempt.ip_address,
            user_agent=attempt.user_agent,
            success=attempt.success,
            failure_reason=attempt.failure_reason,
            user_id=attempt.user_id,
            user=(
                AttemptUser(id=user.id, email=user.email, first_name=user.first_name, last_name=user.last_name)
                if user is not None
                else None
            ),
            country=attempt.country,
            created_at=attempt.created_at or "",
        )


class AttemptListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    attempts: list[LoginAttemptRow]


class StatsBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    success_rate: float
    today_attempts: int
    unique_ips: int
    unique_emails: int

    @classmethod
    def from_stats(cls, stats: LoginStats) -> "StatsBody":
        return cls(
            total_attempts=stats.total_attempts,
            successful_attempts=stats.successful_attempts,
            failed_attempts=stats.failed_attempts,
            success_rate=stats.success_rate,
            today_attempts=stats.today_attempts,
            unique_ips=stats.unique_ips,
            unique_emails=stats.unique_emails,
        )


class StatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    stats: StatsBody


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
