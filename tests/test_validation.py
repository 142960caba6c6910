"""Unit tests for auth/validation.py and posts/validation.py."""

from __future__ import annotations

from auth.validation import normalize_email, validate_login, validate_sign_up
from posts.validation import validate_post_create, validate_post_update


def _sign_up(**overrides) -> dict:
    data = {"name": "Ada", "email": "ada@x.com", "password": "longenough1", "password_confirm": "longenough1"}
    data.update(overrides)
    return data


def _fields(errors) -> set[str]:
    return {e.field for e in errors}


class TestSignUp:
    def test_valid_input(self) -> None:
        assert validate_sign_up(_sign_up()) == []

    def test_password_too_short(self) -> None:
        errors = validate_sign_up(_sign_up(password="short", password_confirm="short"))
        assert _fields(errors) == {"password"}

    def test_password_too_long(self) -> None:
        long = "x" * 33
        assert _fields(validate_sign_up(_sign_up(password=long, password_confirm=long))) == {"password"}

    def test_password_bounds_inclusive(self) -> None:
        for length in (8, 32):
            pw = "x" * length
            assert validate_sign_up(_sign_up(password=pw, password_confirm=pw)) == [], length

    def test_multibyte_password_over_byte_limit(self) -> None:
        """Character count is within bounds but the UTF-8 encoding is not."""
        pw = "\U0001F600" * 20
        errors = validate_sign_up(_sign_up(password=pw, password_confirm=pw))
        assert [(e.field, e.message) for e in errors] == [("password", "Password must be at most 72 bytes long")]

    def test_multibyte_password_within_byte_limit(self) -> None:
        pw = "\U0001F600" * 18
        assert validate_sign_up(_sign_up(password=pw, password_confirm=pw)) == []

    def test_mismatched_confirmation(self) -> None:
        errors = validate_sign_up(_sign_up(password_confirm="different1"))
        assert [(e.field, e.message) for e in errors] == [("password_confirm", "Passwords do not match")]

    def test_bad_email_and_missing_name_reported_together(self) -> None:
        errors = validate_sign_up(_sign_up(name="  ", email="not-an-email"))
        assert _fields(errors) == {"name", "email"}


class TestLogin:
    def test_valid_input(self) -> None:
        assert validate_login({"email": "ada@x.com", "password": "longenough1"}) == []

    def test_oversized_multibyte_password(self) -> None:
        errors = validate_login({"email": "ada@x.com", "password": "\U0001F600" * 20})
        assert [e.field for e in errors] == ["password"]

    def test_messages_are_generic(self) -> None:
        """Every login validation failure uses the same message."""
        errors = validate_login({"email": "nope", "password": "short"})
        assert _fields(errors) == {"email", "password"}
        assert {e.message for e in errors} == {"Invalid email or password"}


def test_normalize_email() -> None:
    assert normalize_email("  Ada@X.COM ") == "ada@x.com"


class TestPosts:
    def test_create_requires_long_enough_text(self) -> None:
        errors = validate_post_create({"title": "short", "content": "long enough content", "category": "news"})
        assert _fields(errors) == {"title"}

    def test_create_valid(self) -> None:
        data = {"title": "A proper title", "content": "Some real content here", "category": "news"}
        assert validate_post_create(data) == []

    def test_update_checks_only_present_fields(self) -> None:
        assert validate_post_update({}) == []
        assert _fields(validate_post_update({"content": "tiny"})) == {"content"}
