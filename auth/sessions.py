"""
auth/sessions.py -- In-memory session table with rolling expiry.

Sessions live only as long as the process. Each token maps to a Session
record; expiry is checked lazily whenever a token is touched or resolved,
and purge_expired() lets the app sweep stale entries on a timer.

State machine per token:
  Active    -- within TTL; touch() pushes expires_at out to now + TTL.
  Expired   -- TTL elapsed; removed on the next touch/resolve/purge.
  Destroyed -- removed by destroy() (logout).
A token never goes back to Active once it is Expired or Destroyed.

Concurrency:
  Every operation holds one lock for its whole read-modify-write, so the
  table behaves as a single writer. touch() only mutates records still in the
  dict, which means a destroy() that lands after a touch() always wins and a
  late touch() can never resurrect a destroyed token.

Callers get snapshot copies, never the live record.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from auth.models import Session

logger = logging.getLogger("loginsvc.sessions")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Generate, renew, resolve and revoke browser sessions."""

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self._ttl = ttl
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def create(self, account_id: int, username: str = "") -> Session:
        token = secrets.token_urlsafe(32)
        now = self._clock()
        record = Session(
            token=token,
            account_id=account_id,
            username=username,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._sessions[token] = record
            return replace(record)

    def touch(self, token: str | None) -> Session | None:
        """Renew a live session and return it; None means unauthenticated."""
        if not token:
            return None
        now = self._clock()
        with self._lock:
            record = self._live_record(token, now)
            if record is None:
                return None
            record.last_accessed_at = now
            record.expires_at = now + self._ttl
            return replace(record)

    def resolve(self, token: str | None) -> int | None:
        """Return the owning account id for a live session, without renewing it."""
        if not token:
            return None
        with self._lock:
            record = self._live_record(token, self._clock())
            return record.account_id if record is not None else None

    def destroy(self, token: str | None) -> Session | None:
        """Remove a session. Unknown tokens are ignored.

        Returns the removed record (so callers can log the session length),
        or None if there was nothing to remove.
        """
        if not token:
            return None
        with self._lock:
            return self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        """Drop every expired session. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [token for token, record in self._sessions.items() if record.is_expired(now)]
            for token in stale:
                del self._sessions[token]
        if stale:
            logger.debug("Purged %d expired sessions", len(stale))
        return len(stale)

    def active_count(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for record in self._sessions.values() if not record.is_expired(now))

    def now(self) -> datetime:
        return self._clock()

    def _live_record(self, token: str, now: datetime) -> Session | None:
        # Caller holds self._lock.
        record = self._sessions.get(token)
        if record is None:
            return None
        if record.is_expired(now):
            del self._sessions[token]
            return None
        return record


__all__ = ["SessionManager"]
