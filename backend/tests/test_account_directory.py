from urllib.parse import parse_qs, urlparse

import pytest

from notive.core.errors import DirectoryError
from notive.core.security import decode_token
from notive.db.models.user import User
from notive.services.account_directory import LocalAccountDirectory


@pytest.fixture()
def directory(session_factory, sender, clock):
    return LocalAccountDirectory(session_factory, sender=sender, now=clock)


def _sign_in(directory, email="ann@example.com", password="secret1"):
    session = directory.sign_in_with_password(email, password)
    directory.activate_session(session)
    return session


def _reset_token(sender) -> str:
    body = sender.messages[-1]["body"]
    link = next(line for line in body.splitlines() if line.startswith("notive://"))
    return parse_qs(urlparse(link).query)["token"][0]


def test_sign_up_then_sign_in(directory, db_session):
    user = directory.sign_up("ann@example.com", "secret1", {"username": "ann"})
    assert user.email == "ann@example.com"
    assert user.username == "ann"

    stored = db_session.query(User).filter(User.email == "ann@example.com").first()
    assert stored.hashed_password != "secret1"

    session = directory.sign_in_with_password("ann@example.com", "secret1")
    assert session.user.id == user.id
    payload = decode_token(session.access_token)
    assert payload["sub"] == "ann@example.com"
    assert payload["tv"] == 0
    assert directory.get_current_user() is None

    directory.activate_session(session)
    assert directory.get_current_user().email == "ann@example.com"


def test_wrong_password_and_unknown_user_look_the_same(directory):
    directory.sign_up("ann@example.com", "secret1")
    with pytest.raises(DirectoryError) as wrong:
        directory.sign_in_with_password("ann@example.com", "nope-nope")
    with pytest.raises(DirectoryError) as unknown:
        directory.sign_in_with_password("bob@example.com", "secret1")
    assert wrong.value.message == unknown.value.message == "Invalid login credentials"


def test_duplicate_sign_up_is_rejected(directory):
    directory.sign_up("ann@example.com", "secret1")
    with pytest.raises(DirectoryError) as exc_info:
        directory.sign_up("ann@example.com", "secret2")
    assert exc_info.value.code == "user_exists"


def test_short_password_is_rejected(directory):
    with pytest.raises(DirectoryError) as exc_info:
        directory.sign_up("ann@example.com", "123")
    assert exc_info.value.code == "weak_password"


def test_unconfirmed_email_blocks_sign_in(session_factory, sender, clock):
    directory = LocalAccountDirectory(session_factory, sender=sender, require_confirmation=True, now=clock)
    directory.sign_up("ann@example.com", "secret1")
    with pytest.raises(DirectoryError) as exc_info:
        directory.sign_in_with_password("ann@example.com", "secret1")
    assert exc_info.value.message == "Email not confirmed"

    assert directory.confirm_email("ann@example.com") is True
    assert directory.sign_in_with_password("ann@example.com", "secret1").user.email_confirmed is True


def test_sign_out_revokes_issued_tokens(directory):
    directory.sign_up("ann@example.com", "secret1")
    session = _sign_in(directory)
    assert directory.get_user_for_token(session.access_token) is not None

    directory.sign_out()
    assert directory.get_current_user() is None
    assert directory.get_user_for_token(session.access_token) is None


def test_update_user_changes_email_and_password(directory):
    directory.sign_up("ann@example.com", "secret1")
    _sign_in(directory)

    updated = directory.update_user(email="ann@new.example.com", password="secret2")
    assert updated.email == "ann@new.example.com"
    assert directory.get_current_user().email == "ann@new.example.com"
    assert directory.sign_in_with_password("ann@new.example.com", "secret2")
    with pytest.raises(DirectoryError):
        directory.sign_in_with_password("ann@new.example.com", "secret1")


def test_update_user_requires_activated_session(directory):
    directory.sign_up("ann@example.com", "secret1")
    directory.sign_in_with_password("ann@example.com", "secret1")
    with pytest.raises(DirectoryError) as exc_info:
        directory.update_user(password="secret2")
    assert exc_info.value.code == "not_authenticated"


def test_password_reset_round_trip(directory, sender):
    directory.sign_up("ann@example.com", "secret1")
    directory.reset_password_for_email("ann@example.com", "notive://reset-password")
    assert sender.messages[-1]["subject"] == "Reset your password"

    token = _reset_token(sender)
    directory.complete_password_reset(token, "brand-new")
    assert directory.sign_in_with_password("ann@example.com", "brand-new")

    with pytest.raises(DirectoryError) as exc_info:
        directory.complete_password_reset(token, "again-new")
    assert exc_info.value.code == "invalid_reset_token"


def test_access_token_cannot_reset_password(directory):
    directory.sign_up("ann@example.com", "secret1")
    session = directory.sign_in_with_password("ann@example.com", "secret1")
    with pytest.raises(DirectoryError):
        directory.complete_password_reset(session.access_token, "brand-new")


def test_reset_for_unknown_email_is_silent(directory, sender):
    directory.reset_password_for_email("ghost@example.com", "notive://reset-password")
    assert sender.messages == []
