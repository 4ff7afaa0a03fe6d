from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from imagehost import db
from imagehost.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    NotFoundError,
    StorageIOError,
)
from imagehost.identity import IdentityStore
from imagehost.models import LoginEvent, User


def test_register_then_login(identity):
    created = identity.register("alice", "a@x.com", "secret1", "10.0.0.1")
    account = identity.login("alice", "secret1", "10.0.0.2")

    assert account["id"] == created["id"]
    assert account["username"] == "alice"
    assert set(account) == {"id", "username", "email"}


def test_register_hashes_password_and_records_login(identity):
    created = identity.register("alice", "a@x.com", "secret1", "10.0.0.1")

    user = db.session.get(User, created["id"])
    assert user.password != "secret1"
    assert user.password.startswith("$2")
    assert user.ip == "10.0.0.1"
    assert LoginEvent.query.filter_by(user_id=user.id).count() == 1


def test_register_duplicate_username_writes_nothing(identity, alice):
    with pytest.raises(DuplicateUsernameError):
        identity.register("alice", "other@x.com", "secret2", "10.0.0.3")

    assert User.query.count() == 1
    assert LoginEvent.query.count() == 1


def test_register_duplicate_email(identity, alice):
    with pytest.raises(DuplicateEmailError):
        identity.register("bob", "a@x.com", "secret2")

    assert User.query.count() == 1


def test_login_by_email(identity, alice):
    account = identity.login("a@x.com", "secret1")

    assert account["username"] == "alice"


def test_login_failures_are_indistinguishable(identity, alice):
    with pytest.raises(InvalidCredentialsError) as wrong_password:
        identity.login("alice", "nope", "10.0.0.1")
    with pytest.raises(InvalidCredentialsError) as unknown_user:
        identity.login("mallory", "secret1", "10.0.0.1")

    assert wrong_password.value.message == unknown_user.value.message
    assert str(wrong_password.value) == str(unknown_user.value)


def test_failed_login_records_nothing(identity, alice):
    with pytest.raises(InvalidCredentialsError):
        identity.login("alice", "nope")

    assert LoginEvent.query.count() == 1


def test_login_updates_last_login_and_history(identity, alice):
    identity.login("alice", "secret1", "192.168.1.5")

    user = db.session.get(User, alice["id"])
    assert user.ip == "192.168.1.5"
    history = identity.login_history(alice["id"])
    assert len(history) == 2
    assert history[0].ip == "192.168.1.5"


def test_get_user(identity, alice):
    assert identity.get_user(alice["id"]) == alice

    with pytest.raises(NotFoundError):
        identity.get_user("missing")


def _datastore_down():
    return OperationalError("SELECT", {}, Exception("disk I/O error"))


def test_register_lookup_failure_raises_storage_error(identity):
    with mock.patch.object(db.session, "query", side_effect=_datastore_down()):
        with pytest.raises(StorageIOError):
            identity.register("alice", "a@x.com", "secret1")


def test_login_lookup_failure_raises_storage_error(identity, alice):
    with mock.patch.object(db.session, "query", side_effect=_datastore_down()):
        with pytest.raises(StorageIOError):
            identity.login("alice", "secret1")


def test_register_is_atomic(identity):
    with mock.patch.object(db.session, "commit", side_effect=SQLAlchemyError("boom")):
        with pytest.raises(StorageIOError):
            identity.register("alice", "a@x.com", "secret1", "10.0.0.1")

    assert User.query.count() == 0
    assert LoginEvent.query.count() == 0


def test_login_is_atomic(identity, alice):
    before = db.session.get(User, alice["id"]).last_login

    with mock.patch.object(db.session, "commit", side_effect=SQLAlchemyError("boom")):
        with pytest.raises(StorageIOError):
            identity.login("alice", "secret1", "192.168.1.5")

    user = db.session.get(User, alice["id"])
    assert user.ip == "10.0.0.1"
    assert user.last_login == before
    assert LoginEvent.query.count() == 1


def test_register_race_on_username_reports_duplicate(identity, alice):
    # Both pre-checks pass as if the other registration had not landed yet
    with mock.patch.object(IdentityStore, "_taken", side_effect=[False, False, True]):
        with pytest.raises(DuplicateUsernameError):
            identity.register("alice", "other@x.com", "secret2")

    assert User.query.count() == 1


def test_register_race_on_email_reports_duplicate(identity, alice):
    with mock.patch.object(
        IdentityStore, "_taken", side_effect=[False, False, False, True]
    ):
        with pytest.raises(DuplicateEmailError):
            identity.register("bob", "a@x.com", "secret2")

    assert User.query.count() == 1
