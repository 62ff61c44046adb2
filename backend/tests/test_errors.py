import pytest

from notive.core.errors import CooldownActiveError, DirectoryError, describe_sign_in_error
from notive.core.observability import mask_email
from notive.core.utils import is_valid_email, normalize_email


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Invalid login credentials", "Invalid email or password"),
        ("Email not confirmed", "Please verify your email before logging in"),
        ("Too many requests", "Too many login attempts. Please try again later"),
        ("Authentication service unavailable", "Authentication service unavailable"),
    ],
)
def test_describe_sign_in_error(raw, expected):
    assert describe_sign_in_error(DirectoryError(raw)) == expected


def test_describe_sign_in_error_without_message():
    assert describe_sign_in_error(None) == "Login failed. Please try again."
    assert describe_sign_in_error(RuntimeError()) == "Login failed. Please try again."


def test_cooldown_error_message():
    err = CooldownActiveError(12)
    assert err.message == "Please wait 12 seconds before trying again."
    assert err.remaining_seconds == 12


@pytest.mark.parametrize(
    "email,valid",
    [
        ("ann@example.com", True),
        ("a.b+c@mail.example.org", True),
        ("ann@example", False),
        ("ann example@x.com", False),
        ("@example.com", False),
        ("", False),
    ],
)
def test_email_format(email, valid):
    assert is_valid_email(email) is valid


def test_normalize_and_mask_email():
    assert normalize_email("  Ann@Example.COM ") == "ann@example.com"
    assert mask_email("ann@example.com") == "a***@example.com"
    assert mask_email("broken") == "***"
