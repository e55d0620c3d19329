"""
auth/models.py -- Domain dataclasses for accounts and sessions.

Pattern: Data class (pure data container, near-zero logic). Stores, the
session manager and the service do the work; these only carry shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    """A registered identity.

    username and email are always stored lowercase; the store's unique
    indexes compare lower() values so mixed-case duplicates are rejected even
    if a row was written by something other than AccountService.

    password_hash is the bcrypt output. It never leaves the server -- API
    response models are built field by field and do not include it.
    """

    username: str
    email: str
    password_hash: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None  # None until the first password login
    is_active: bool = True


@dataclass
class Session:
    """Server-side state for one authenticated browser session.

    expires_at is always last_accessed_at + TTL. username is carried only so
    log lines can name the user without a store round-trip.
    """

    token: str
    account_id: int
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    username: str = ""

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def duration_seconds(self, now: datetime) -> int:
        """Whole seconds since the session was created (login time)."""
        return max(0, round((now - self.created_at).total_seconds()))
