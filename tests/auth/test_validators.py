"""Tests for input validators."""

import pytest

from coursemart.auth.validators import (
    PASSWORD_MIN_LENGTH,
    USERNAME_MAX_LENGTH,
    validate_contact,
    validate_image_link,
    validate_password,
    validate_username,
)


class TestValidateContact:
    """Tests for contact number validation."""

    def test_ten_digits(self) -> None:
        result = validate_contact("9876543210")
        assert result.valid is True
        assert result.message is None

    @pytest.mark.parametrize(
        "contact",
        [
            "",
            "98765",
            "98765432101",  # 11 digits
            "98765-43210",
            "+919876543210",
            "98765abcde",
        ],
    )
    def test_invalid_contact(self, contact: str) -> None:
        result = validate_contact(contact)
        assert result.valid is False
        assert result.message == "Contact Number must be 10 digits long"


class TestValidatePassword:
    def test_minimum_length(self) -> None:
        assert validate_password("x" * PASSWORD_MIN_LENGTH).valid is True

    def test_too_short(self) -> None:
        result = validate_password("x" * (PASSWORD_MIN_LENGTH - 1))
        assert result.valid is False
        assert str(PASSWORD_MIN_LENGTH) in result.message


class TestValidateUsername:
    @pytest.mark.parametrize(
        "username,valid",
        [
            ("asha", True),
            ("asha_k.01", True),
            ("", False),
            ("asha k", False),
            ("a" * (USERNAME_MAX_LENGTH + 1), False),
        ],
    )
    def test_username(self, username: str, valid: bool) -> None:
        assert validate_username(username).valid is valid


class TestValidateImageLink:
    @pytest.mark.parametrize(
        "link",
        ["https://cdn.coursemart.io/a.png", "http://example.com/img?id=1"],
    )
    def test_valid_link(self, link: str) -> None:
        assert validate_image_link(link).valid is True

    @pytest.mark.parametrize(
        "link",
        ["ftp://example.com/a.png", "cdn.coursemart.io/a.png", "https://", "javascript:alert(1)"],
    )
    def test_invalid_link(self, link: str) -> None:
        result = validate_image_link(link)
        assert result.valid is False
        assert result.message == "Invalid image URL"
