"""
API request and response models for the login service.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two, and
password hashes never appear in any model here.

Request models accept missing or empty fields on purpose: the presence and
length rules live in AccountService so their order and messages are the same
whichever caller reaches them. Pydantic only enforces types here.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register."""

    model_config = ConfigDict(extra="ignore")

    username: str = ""
    email: str = ""
    password: str = Field(default="", json_schema_extra={"format": "password"})


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    model_config = ConfigDict(extra="ignore")

    username: str = ""
    password: str = Field(default="", json_schema_extra={"format": "password"})


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisteredUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    created_at: Optional[str]

    @classmethod
    def from_account(cls, account: Account) -> "RegisteredUser":
        return cls(id=account.id, username=account.username, email=account.email, created_at=account.created_at)


class RegisterResponse(BaseModel):
    """Response for POST /api/register (201)."""

    model_config = ConfigDict(frozen=True)

    message: str = "Registration successful"
    user: RegisteredUser


class LoggedInUser(BaseModel):
    """lastLogin is camelCase on the wire; it is the login before this one."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    lastLogin: Optional[str]

    @classmethod
    def from_account(cls, account: Account) -> "LoggedInUser":
        return cls(id=account.id, username=account.username, email=account.email, lastLogin=account.last_login)


class LoginResponse(BaseModel):
    """Response for POST /api/login (200)."""

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    user: LoggedInUser


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ProfileUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    created_at: Optional[str]
    last_login: Optional[str]
    session_duration: int = Field(description="Seconds since this session was created.")


class ProfileStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_users: int


class ProfileResponse(BaseModel):
    """Response for GET /api/profile (200)."""

    model_config = ConfigDict(frozen=True)

    user: ProfileUser
    stats: ProfileStats


class HealthResponse(BaseModel):
    """Response for GET /health (200 or 503)."""

    model_config = ConfigDict(frozen=True)

    status: str
    database: str
    timestamp: str


class StatusResponse(BaseModel):
    """Response for GET /status -- process diagnostics."""

    model_config = ConfigDict(frozen=True)

    status: str = "running"
    uptime_seconds: int
    timestamp: str
    active_sessions: int
    authenticated: bool


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    field is set only for registration conflicts; login failures never carry it.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    field: Optional[str] = None
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail
