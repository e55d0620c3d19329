"""Unit tests for auth/store.py -- AccountStore persistence.

Covers:
- insert() assigns ids and timestamps
- unique indexes reject case-variant duplicates and name the field
- find_active_by_username() is case-insensitive and hides inactive rows
- find_by_id() hides inactive rows
- count_all() counts inactive rows too
- touch_last_login() is idempotent
- driver failures surface as StoreUnavailableError
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import DuplicateError, StoreUnavailableError
from auth.store import AccountStore


def test_insert_returns_account_with_id(store: AccountStore) -> None:
    account = store.insert("alice", "alice@x.com", "hash")
    assert account.id is not None
    assert account.created_at
    assert account.last_login is None
    assert account.is_active is True


def test_duplicate_username_any_case(store: AccountStore) -> None:
    store.insert("alice", "alice@x.com", "hash")
    with pytest.raises(DuplicateError) as exc_info:
        store.insert("ALICE", "other@x.com", "hash")
    assert exc_info.value.field == "username"


def test_duplicate_email_any_case(store: AccountStore) -> None:
    store.insert("alice", "alice@x.com", "hash")
    with pytest.raises(DuplicateError) as exc_info:
        store.insert("bob", "ALICE@X.COM", "hash")
    assert exc_info.value.field == "email"


def test_inactive_accounts_still_block_duplicates(store: AccountStore) -> None:
    account = store.insert("alice", "alice@x.com", "hash")
    store.set_active(account.id, False)
    with pytest.raises(DuplicateError):
        store.insert("alice", "new@x.com", "hash")


def test_find_active_by_username_is_case_insensitive(store: AccountStore) -> None:
    created = store.insert("alice", "alice@x.com", "hash")
    found = store.find_active_by_username("AlIcE")
    assert found is not None
    assert found.id == created.id
    assert found.password_hash == "hash"


def test_inactive_accounts_are_invisible(store: AccountStore) -> None:
    account = store.insert("alice", "alice@x.com", "hash")
    assert store.set_active(account.id, False) is True
    assert store.find_active_by_username("alice") is None
    assert store.find_by_id(account.id) is None


def test_set_active_unknown_id(store: AccountStore) -> None:
    assert store.set_active(9999, False) is False


def test_count_all_includes_inactive(store: AccountStore) -> None:
    first = store.insert("alice", "alice@x.com", "hash")
    store.insert("bob", "bob@x.com", "hash")
    store.set_active(first.id, False)
    assert store.count_all() == 2


def test_touch_last_login(store: AccountStore) -> None:
    account = store.insert("alice", "alice@x.com", "hash")
    store.touch_last_login(account.id)
    store.touch_last_login(account.id)
    assert store.find_by_id(account.id).last_login is not None


def test_touch_last_login_unknown_id_is_noop(store: AccountStore) -> None:
    store.touch_last_login(12345)


def test_ping(store: AccountStore) -> None:
    assert store.ping() is True


def test_driver_failure_becomes_store_unavailable(store: AccountStore) -> None:
    boom = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with patch.object(store.engine, "connect", side_effect=boom):
        with pytest.raises(StoreUnavailableError) as exc_info:
            store.count_all()
        assert store.ping() is False
    assert exc_info.value.__cause__ is boom


def test_unreachable_database_does_not_raise_on_startup(tmp_path) -> None:
    """A directory that does not exist cannot hold the SQLite file."""
    s = AccountStore(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    try:
        assert s.ready is False
        assert s.ping() is False
    finally:
        s.close()
