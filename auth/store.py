"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Service and route code never touches SQL.

Uniqueness:
  username and email are unique case-insensitively via unique indexes on
  lower(username) and lower(email). The insert is a single statement, so two
  racing registrations cannot both succeed -- the loser gets IntegrityError,
  which insert() turns into DuplicateError naming the colliding field.
  There is no read-then-insert check anywhere in this module.

Failure policy:
  IntegrityError on insert -> DuplicateError(field).
  Any other SQLAlchemyError -> StoreUnavailableError, chained to the original
  so the server log keeps the full diagnostic.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, create_engine, event, func, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateError, StoreUnavailableError
from auth.models import Account

logger = logging.getLogger("loginsvc.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(50), nullable=False),
    Column("email", String(100), nullable=False),
    Column("password_hash", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),  # ISO 8601, NULL until first password login
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_USERNAME_INDEX = "uq_users_username_lower"
_EMAIL_INDEX = "uq_users_email_lower"

Index(_USERNAME_INDEX, func.lower(_users.c.username), unique=True)
Index(_EMAIL_INDEX, func.lower(_users.c.email), unique=True)
Index("ix_users_created_at", _users.c.created_at)


# ---------------------------------------------------------------------------
# SQLite tuning
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        account = store.insert("alice", "alice@example.com", hasher.hash("secret1"))
        store.find_active_by_username("ALICE")   # case-insensitive
        store.close()
    """

    def __init__(self, db_url: str, *, initialize: bool = True) -> None:
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs.update(pool_size=20, pool_pre_ping=True, connect_args={"connect_timeout": 2})
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self.ready = self.initialize() if initialize else False

    def initialize(self) -> bool:
        """Create the users table and its indexes if they do not exist.

        Returns False (after logging) when the database is unreachable so the
        server can still start and report itself unhealthy on /health.
        """
        try:
            _metadata.create_all(self.engine)
            with self.engine.connect() as conn:
                count = conn.execute(select(func.count()).select_from(_users)).scalar() or 0
        except SQLAlchemyError as exc:
            logger.error("Database initialization failed: %s", exc)
            return False
        logger.info("Database schema ready (%d registered accounts)", count)
        self.ready = True
        return True

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, converting driver failures to StoreUnavailableError.

        IntegrityError passes through untouched: insert() needs it to tell
        a duplicate apart from an outage.
        """
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            raise StoreUnavailableError() from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, username: str, email: str, password_hash: str) -> Account:
        """Insert a new account and return it with its assigned id.

        Raises DuplicateError("username" | "email") if either unique index
        rejects the row. Values are stored as given; AccountService lowercases
        them first, and the indexes compare lower() anyway.
        """
        now = _now_iso()
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        email=email,
                        password_hash=password_hash,
                        created_at=now,
                        updated_at=now,
                        is_active=1,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateError(self._duplicate_field(exc, username)) from exc
        return Account(
            id=result.inserted_primary_key[0],
            username=username,
            email=email,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
            last_login=None,
            is_active=True,
        )

    def touch_last_login(self, account_id: int) -> None:
        """Stamp the current UTC time as last_login. Idempotent."""
        now = _now_iso()
        with self._connect() as conn:
            conn.execute(_users.update().where(_users.c.id == account_id).values(last_login=now, updated_at=now))
            conn.commit()

    def set_active(self, account_id: int, is_active: bool) -> bool:
        """Soft-delete (or restore) an account. Returns False if the id is unknown."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == account_id)
                .values(is_active=1 if is_active else 0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_active_by_username(self, username: str) -> Account | None:
        """Case-insensitive lookup. Inactive accounts are treated as absent."""
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where(
                    (func.lower(_users.c.username) == username.lower()) & (_users.c.is_active == 1)
                )
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Look up an active account by primary key. Inactive accounts are treated as absent."""
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.id == account_id) & (_users.c.is_active == 1))
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def count_all(self) -> int:
        """Number of accounts, active and inactive. Informational only."""
        with self._connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _duplicate_field(self, exc: IntegrityError, username: str) -> str:
        """Work out which unique index an IntegrityError came from.

        SQLite and PostgreSQL both put the index name in the driver message.
        If a driver does not, the row that won the race is already committed,
        so a lookup by username settles it.
        """
        message = str(exc.orig).lower()
        if _USERNAME_INDEX in message:
            return "username"
        if _EMAIL_INDEX in message:
            return "email"
        with self._connect() as conn:
            taken = conn.execute(
                select(_users.c.id).where(func.lower(_users.c.username) == username.lower())
            ).fetchone()
        return "username" if taken is not None else "email"


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
        is_active=bool(row.is_active),
    )
