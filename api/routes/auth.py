"""
api/routes/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST  /auth/register       -- create account; 201 + JWT (body and cookie)
  POST  /auth/login          -- password login; 200 + JWT (body and cookie)
  POST  /auth/logout         -- expires the cookie; always 200
  GET   /auth/me             -- current user profile (requires auth)
  GET   /auth/users          -- list all users (admin only)
  PATCH /auth/users/{id}     -- update role/is_active (admin only)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] The controller equalizes bcrypt timing for unknown emails.
  [M4] PATCH /users/{id} blocks self-deactivation and last-admin-deactivation.
  [M5] Cache-Control: no-store on every response that carries a token.

Every expected failure is an auth.errors exception raised by the controller;
api/main.py turns it into the error envelope. Routes only map success.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, MeResponse, MessageResponse, RegisterRequest, UserPatch, UserProfile
from auth.dependencies import get_current_user, require_admin, try_get_current_user
from auth.flow import AuthFlowController, ClientInfo
from auth.models import User
from auth.store import UserStore
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.config import get_settings

# Auth policy:
# - POST  /auth/register:   public
# - POST  /auth/login:      public, rate-limited
# - POST  /auth/logout:     public -- clearing a cookie needs no prior auth
# - GET   /auth/me:         requires auth (get_current_user)
# - GET   /auth/users:      requires admin (require_admin)
# - PATCH /auth/users/{id}: requires admin (require_admin)
router = APIRouter()


def _login_rate_limit() -> str:
    return get_settings().login_rate_limit


def client_info(request: Request) -> ClientInfo:
    """Collect IP, user agent and country for the ledger.

    The first X-Forwarded-For hop wins, then X-Real-IP, then the socket peer.
    These headers are recorded for audit only; nothing authorizes on them.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip:
        ip = request.headers.get("X-Real-IP", "").strip()
    if not ip and request.client is not None:
        ip = request.client.host
    country = request.headers.get(get_settings().country_header, "").strip()
    return ClientInfo(
        ip_address=ip or "unknown",
        user_agent=request.headers.get("User-Agent", ""),
        country=country[:64],
    )


def _token_response(request: Request, user: User, token: str, status_code: int, message: str) -> JSONResponse:
    controller: AuthFlowController = request.app.state.controller
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=controller.config.expires_in,
            user=UserProfile.from_user(user),
            message=message,
        ).model_dump(),
    )
    set_auth_cookie(resp, token, controller.config)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and sign the new user in.

    400 for missing/invalid fields or a duplicate email (first message only).
    """
    controller: AuthFlowController = request.app.state.controller
    user, token = controller.register(body.model_dump())
    return _token_response(request, user, token, 201, "Registration successful")


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_login_rate_limit)  # [H2] must be BELOW @router so the route registers the limited function
def login(request: Request, body: Any = Body(default=None)) -> JSONResponse:
    """Authenticate with email and password; set JWT cookie.

    Every parseable request writes exactly one ledger entry, whatever the
    outcome. The body is taken as raw JSON so a missing body, an oversized
    password or a non-string field still reaches the controller and the
    ledger; only unparseable JSON and rate-limited requests (429) stop short.
    Wrong password and unknown email share one message ("Invalid email or
    password") so the response does not reveal which emails exist.
    """
    fields = body if isinstance(body, dict) else {}
    controller: AuthFlowController = request.app.state.controller
    user, token = controller.login(fields.get("email"), fields.get("password"), client_info(request))
    return _token_response(request, user, token, 200, "Login successful")


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Expire the JWT cookie. There is no server-side revocation list."""
    controller: AuthFlowController = request.app.state.controller
    controller.logout(try_get_current_user(request))
    resp = JSONResponse(content=MessageResponse(message="User logged out successfully").model_dump())
    clear_auth_cookie(resp, controller.config)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the public profile of the currently authenticated user."""
    controller: AuthFlowController = request.app.state.controller
    return MeResponse(user=UserProfile.from_user(controller.me(current_user.id)))


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserProfile])
def list_users(request: Request, current_user: User = Depends(require_admin)) -> list[UserProfile]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserProfile.from_user(u) for u in user_store.list_users()]


@router.patch("/auth/users/{user_id}", response_model=UserProfile)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    current_user: User = Depends(require_admin),
) -> UserProfile:
    """Update a user's role or active status. Admin only.

    Deactivation is the only way an account leaves service; users are never
    hard-deleted, so their ledger history keeps resolving.

    [M4] Prevents:
      - Self-deactivation (admin accidentally locking themselves out).
      - Deactivating or demoting the last active admin.
    """
    user_store: UserStore = request.app.state.user_store

    target = user_store.find_by_id(user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    if body.role is None and body.is_active is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    removes_admin = target.role == "admin" and target.is_active and (
        body.is_active is False or (body.role is not None and body.role.value != "admin")
    )
    if body.is_active is False and target.id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
        )
    if removes_admin and user_store.count_active_admins() <= 1:
        raise HTTPException(
            status_code=400,
            detail={"code": "last_admin", "message": "Cannot remove the last active admin account."},
        )

    if body.role is not None:
        target.role = body.role.value
    if body.is_active is not None:
        target.is_active = body.is_active

    user_store.save(target)
    return UserProfile.from_user(target)
