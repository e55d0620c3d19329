"""
auth/service.py -- Registration, login and profile orchestration.

AccountService owns the credential lifecycle. It validates input, normalizes
identity fields, and coordinates three injected collaborators:

  AccountStore     -- persistence and the case-insensitive uniqueness guarantee
  PasswordHasher   -- bcrypt hash / verify
  SessionManager   -- session creation and teardown

Route handlers call exactly one method here and map the result (or the
AccountError it raises) to a response.

Security:
  Login failures are symmetric. An unknown username and a wrong password
  raise the same InvalidCredentialsError after the same bcrypt cost, so
  neither the response body nor its timing reveals which accounts exist.
  Registration conflicts DO name the field; that is an accepted disclosure.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import re
import time

from auth.errors import (
    ConflictError,
    DuplicateError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from auth.models import Account, Session
from auth.passwords import PasswordHasher
from auth.sessions import SessionManager
from auth.store import AccountStore

logger = logging.getLogger("loginsvc.auth")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_registration(username: str, email: str, password: str) -> None:
    """Raise ValidationError for the first rule the input breaks.

    Order is fixed: presence, username length, email shape, password length.
    """
    if not username or not email or not password:
        raise ValidationError("All fields are required")
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be between {USERNAME_MIN_LENGTH} and {USERNAME_MAX_LENGTH} characters"
        )
    if not _EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email address")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class AccountService:
    """Credential lifecycle: register, authenticate, profile, logout."""

    def __init__(self, store: AccountStore, sessions: SessionManager, hasher: PasswordHasher) -> None:
        self.store = store
        self.sessions = sessions
        self.hasher = hasher

    def register(self, username: str, email: str, password: str) -> tuple[Account, Session]:
        """Create an account and open a session for it.

        Raises ValidationError, ConflictError (field="username" | "email"), or
        StoreUnavailableError.
        """
        start = time.perf_counter()
        validate_registration(username, email, password)
        username = username.lower()
        email = email.lower()

        password_hash = self.hasher.hash(password)
        try:
            account = self.store.insert(username, email, password_hash)
        except DuplicateError as exc:
            logger.info("Registration rejected: %s already exists", exc.field)
            raise ConflictError(exc.field) from exc

        session = self.sessions.create(account.id, account.username)
        logger.info("Account registered: %s (id=%s, %.0fms)", account.username, account.id, _elapsed_ms(start))
        return account, session

    def authenticate(self, username: str, password: str) -> tuple[Account, Session]:
        """Verify a username/password pair and open a session.

        The returned Account is the row as read before the login was
        recorded, so its last_login is the *previous* successful login.

        Raises ValidationError (empty fields), InvalidCredentialsError, or
        StoreUnavailableError.
        """
        start = time.perf_counter()
        if not username or not password:
            raise ValidationError("Username and password are required")

        account = self.store.find_active_by_username(username)
        if account is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.dummy_verify(password)
            logger.info("Login failed: unknown user (%.0fms)", _elapsed_ms(start))
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, account.password_hash):
            logger.info("Login failed: bad password for id=%s (%.0fms)", account.id, _elapsed_ms(start))
            raise InvalidCredentialsError()

        try:
            self.store.touch_last_login(account.id)
        except Exception:
            logger.warning("Could not record last_login for id=%s", account.id, exc_info=True)

        session = self.sessions.create(account.id, account.username)
        logger.info("Login succeeded: %s (id=%s, %.0fms)", account.username, account.id, _elapsed_ms(start))
        return account, session

    def get_profile(self, account_id: int) -> tuple[Account, int]:
        """Return the active account plus the total number of accounts.

        Raises NotFoundError if the account is gone or deactivated.
        """
        account = self.store.find_by_id(account_id)
        if account is None:
            logger.info("Profile lookup failed: id=%s not found or inactive", account_id)
            raise NotFoundError()
        return account, self.store.count_all()

    def logout(self, token: str | None) -> Session | None:
        session = self.sessions.destroy(token)
        if session is not None:
            duration = session.duration_seconds(self.sessions.now())
            logger.info("Logged out: %s (session %ds)", session.username or session.account_id, duration)
        return session
