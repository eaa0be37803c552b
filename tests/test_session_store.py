import pytest
from sqlalchemy.exc import OperationalError

from security.errors import SessionPersistenceError


class LockedSession:
    """Stands in for a session whose database stays locked past the timeout."""

    def __init__(self):
        self.rolled_back = False

    def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE users ...", {}, Exception("database is locked"))

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    def commit(self):
        pass

    def rollback(self):
        self.rolled_back = True


def test_unconditional_write_and_clear(store, make_account):
    account = make_account()
    assert store.set_refresh_token(account.id, "token-a") is True
    assert store.get_account(account.id).refresh_token == "token-a"
    assert store.set_refresh_token(account.id, None) is True
    assert store.get_account(account.id).refresh_token is None


def test_compare_and_set_only_lands_on_matching_value(store, make_account):
    account = make_account()
    store.set_refresh_token(account.id, "token-a")

    assert store.set_refresh_token(account.id, "token-b", expected="token-a") is True
    # same precondition again: the slot has moved on
    assert store.set_refresh_token(account.id, "token-c", expected="token-a") is False
    assert store.get_account(account.id).refresh_token == "token-b"


def test_compare_and_set_against_empty_slot(store, make_account):
    account = make_account()
    assert store.set_refresh_token(account.id, "token-a", expected=None) is True
    assert store.set_refresh_token(account.id, "token-b", expected=None) is False


def test_write_for_unknown_account_reports_false(store, app):
    assert store.set_refresh_token("no-such-id", "token") is False


def test_lookup_by_email(store, make_account):
    account = make_account(email="ada@example.com")
    assert store.get_account_by_email("ada@example.com").id == account.id
    assert store.get_account_by_email("nobody@example.com") is None


def test_store_failures_surface_as_persistence_errors(store, make_account, monkeypatch):
    account = make_account()
    locked = LockedSession()
    monkeypatch.setattr(store, "_session", lambda: locked)

    with pytest.raises(SessionPersistenceError):
        store.set_refresh_token(account.id, "token")
    assert locked.rolled_back

    with pytest.raises(SessionPersistenceError):
        store.get_account(account.id)


def test_account_keeps_only_the_password_hash(store, make_account):
    account = make_account()
    stored = store.get_account(account.id)
    assert stored.password_hash.startswith("$argon2")
    assert not hasattr(stored, "password")
