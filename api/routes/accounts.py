"""
api/routes/accounts.py -- Registration, login, logout and profile endpoints.

Routes:
  POST /api/register  -- create account; sets session cookie; 201
  POST /api/login     -- password login; sets session cookie; 200
  POST /api/logout    -- destroys session; clears cookie; 200
  GET  /api/profile   -- current account + stats (requires session); renews cookie

Each handler calls exactly one AccountService operation. Failures are raised
as AccountError subclasses and turned into the shared error envelope by the
exception handlers in api/main.py -- there is no error formatting here.

Handlers are plain `def`: bcrypt and the store block, so FastAPI runs them in
its threadpool and unrelated requests are not held up.

Security:
  Cache-Control: no-store on every response that sets or clears the cookie.
  Login errors come straight from AccountService, which makes an unknown
  username and a wrong password indistinguishable.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoggedInUser,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    ProfileStats,
    ProfileUser,
    RegisteredUser,
    RegisterRequest,
    RegisterResponse,
)
from auth.dependencies import (
    clear_session_cookie,
    get_account_service,
    get_current_session,
    session_token,
    set_session_cookie,
)
from auth.models import Session
from auth.service import AccountService

# Auth policy:
# - POST /api/register: public
# - POST /api/login:    public
# - POST /api/logout:   public -- logging out without a session is a no-op
# - GET  /api/profile:  requires a live session (get_current_session)
router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(body: RegisterRequest, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    """Create an account and log it in."""
    account, session = service.register(body.username, body.email, body.password)
    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse(user=RegisteredUser.from_account(account)).model_dump(),
    )
    set_session_cookie(resp, session.token, service.sessions.cookie_max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    """Authenticate with username and password; set the session cookie."""
    account, session = service.authenticate(body.username, body.password)
    resp = JSONResponse(content=LoginResponse(user=LoggedInUser.from_account(account)).model_dump())
    set_session_cookie(resp, session.token, service.sessions.cookie_max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, service: AccountService = Depends(get_account_service)) -> JSONResponse:
    """Destroy the caller's session (if any) and clear the cookie."""
    service.logout(session_token(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/profile", response_model=ProfileResponse)
def profile(
    session: Session = Depends(get_current_session),
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Return the logged-in account, its session length, and the account count."""
    account, total = service.get_profile(session.account_id)
    body = ProfileResponse(
        user=ProfileUser(
            id=account.id,
            username=account.username,
            email=account.email,
            created_at=account.created_at,
            last_login=account.last_login,
            session_duration=session.duration_seconds(service.sessions.now()),
        ),
        stats=ProfileStats(total_users=total),
    )
    resp = JSONResponse(content=body.model_dump())
    set_session_cookie(resp, session.token, service.sessions.cookie_max_age)
    resp.headers["Cache-Control"] = "no-store"
    return resp
