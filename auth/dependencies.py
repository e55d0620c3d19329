"""
auth/dependencies.py -- FastAPI Depends() helpers and session cookie helpers.

Collaborators are read from app.state, where the lifespan (or a test
lifespan) wires them. Nothing here holds module-level store or session state.

try_get_current_session() is the soft variant (returns None).
get_current_session() wraps it and raises AuthenticationRequiredError (401).

Both renew the session they find: every authenticated request pushes the
expiry out by one TTL. Route handlers re-issue the cookie with
set_session_cookie() so the browser-side max-age rolls forward too.

Layer rule: may import fastapi (it is part of the DI system), never api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import AuthenticationRequiredError
from auth.models import Session
from auth.service import AccountService
from auth.sessions import SessionManager
from core.config import get_settings

_settings = get_settings()


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def session_token(request: Request) -> str | None:
    return request.cookies.get(_settings.session_cookie_name) or None


def try_get_current_session(request: Request) -> Session | None:
    """Renew and return the caller's session, or None if there is no live one."""
    return get_session_manager(request).touch(session_token(request))


def get_current_session(request: Request) -> Session:
    """Require a live session.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: Session = Depends(get_current_session)): ...
    """
    session = try_get_current_session(request)
    if session is None:
        raise AuthenticationRequiredError()
    return session


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, max_age: int) -> None:
    """Write the opaque session token as an httpOnly cookie.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    secure: HTTPS only when SECURE_COOKIES=true or ENVIRONMENT=production.
    max_age: one TTL; re-sent on every authenticated response (rolling).
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        _settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
